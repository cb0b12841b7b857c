"""
Secret Santa Assignment Module - Draw Algorithm

RESPONSIBILITIES:
- Assignment algorithm (rejection sampling over full shuffles)
- Group exclusion rule
- Feasibility pre-check
- Assignment validation

ISOLATION:
- Pure algorithm logic (no mail dependencies)
- Can be tested independently
- Uses secrets.SystemRandom by default, any random.Random can be injected
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Dict, List, Optional

from .errors import ConfigurationError, UnsatisfiableConstraintError
from .storage import Participant


# Two families of 8 with --groups need ~12,870 attempts on average
DEFAULT_MAX_ATTEMPTS = 1_000_000

log = logging.getLogger("santa")


@dataclass(frozen=True)
class Assignment:
    giver: Participant
    receiver: Participant


def _same_group(giver: Participant, receiver: Participant) -> bool:
    return bool(giver.group and receiver.group and giver.group == receiver.group)


def validate_assignment_possibility(participants: List[Participant], enforce_groups: bool = False) -> Optional[str]:
    """
    Check if a draw is possible before attempting it.

    Without groups any list of 2+ people has a valid draw. With groups, every
    member of a group must buy for someone outside it, so a group can hold at
    most half of all participants.
    """
    if len(participants) < 2:
        return "Need at least 2 participants for Secret Santa"

    if not enforce_groups:
        return None

    group_sizes: Dict[str, int] = {}
    for p in participants:
        if p.group:
            group_sizes[p.group] = group_sizes.get(p.group, 0) + 1

    total = len(participants)
    too_big = [f"{group} ({size})" for group, size in group_sizes.items() if size * 2 > total]
    if too_big:
        return (f"Assignment impossible - group {', '.join(too_big)} holds more than half "
                f"of the {total} participants. Disable --groups or rebalance the groups.")

    return None


def _validate_assignment_integrity(assignments: List[Assignment], participants: List[Participant]) -> None:
    """
    Final safety net before a draw is accepted.

    Ensures:
    1. Every participant is a giver exactly once, in input order
    2. Every participant is a receiver exactly once
    3. No one gives to themselves

    Raises:
        ValueError: If any integrity check fails
    """
    if len(assignments) != len(participants):
        raise ValueError(f"Assignment count mismatch: {len(assignments)} assignments for {len(participants)} participants")

    givers = [a.giver.uid for a in assignments]
    if givers != [p.uid for p in participants]:
        raise ValueError("Giver order does not match participant order")

    receivers = [a.receiver.uid for a in assignments]
    if sorted(receivers) != sorted(givers):
        raise ValueError(f"Receivers are not a permutation of participants: {receivers}")

    for a in assignments:
        if a.giver.uid == a.receiver.uid:
            raise ValueError(f"Self-assignment detected: {a.giver.name}")


def _find_conflict(givers: List[Participant], receivers: List[Participant], enforce_groups: bool) -> Optional[str]:
    for giver, receiver in zip(givers, receivers):
        # Rule 1: can't get yourself
        if giver.uid == receiver.uid:
            return f"Self-assignment found for {giver.name}"
        # Rule 2: can't get someone in your group
        if enforce_groups and _same_group(giver, receiver):
            return (f"Group conflict: {giver.name} ({giver.group}) can't get "
                    f"{receiver.name} ({receiver.group})")
    return None


def make_assignments(participants: List[Participant], enforce_groups: bool = False,
                     max_attempts: int = DEFAULT_MAX_ATTEMPTS, rng=None,
                     logger: Optional[logging.Logger] = None, verbose: bool = False) -> List[Assignment]:
    """
    Create Secret Santa assignments.

    ALGORITHM MECHANICS:
    1. Givers stay in input order
    2. Each attempt shuffles a fresh copy of the list to get receivers
       (Fisher-Yates, every ordering equally likely)
    3. Any self-pair (or same-group pair when enforce_groups) rejects the
       WHOLE candidate, nothing is patched in place
    4. The first clean candidate wins

    Expected attempts without groups is about e (~2.7), since roughly 1/e of
    all permutations have no fixed point.

    Args:
        participants: Ordered participant list (givers)
        enforce_groups: Reject pairings inside the same group
        max_attempts: Ceiling before giving up
        rng: Object with a shuffle() method, defaults to secrets.SystemRandom()
        logger: Logger for attempt tracing
        verbose: Log every rejected attempt at INFO instead of DEBUG

    Returns:
        List of Assignment in giver order

    Raises:
        ConfigurationError: Fewer than 2 participants
        UnsatisfiableConstraintError: No valid draw within max_attempts
    """
    if len(participants) < 2:
        raise ConfigurationError("Need at least 2 participants")

    rng = rng or secrets.SystemRandom()
    logger = logger or log
    trace_level = logging.INFO if verbose else logging.DEBUG
    givers = list(participants)

    logger.info("Creating assignments...")
    for attempt in range(1, max_attempts + 1):
        receivers = list(participants)
        rng.shuffle(receivers)

        conflict = _find_conflict(givers, receivers, enforce_groups)
        if conflict:
            logger.log(trace_level, f"Attempt {attempt}: {conflict}. Re-shuffling entire list.")
            continue

        result = [Assignment(giver=g, receiver=r) for g, r in zip(givers, receivers)]
        _validate_assignment_integrity(result, participants)

        logger.info(f"Assignments created successfully after {attempt} attempt(s).")
        return result

    raise UnsatisfiableConstraintError(
        f"No valid assignment found after {max_attempts} attempts"
        + (" (group exclusion enabled)" if enforce_groups else "")
    )
