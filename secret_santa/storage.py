"""
Secret Santa Storage Module - Participant Loading

RESPONSIBILITIES:
- JSON file reading (explicit UTF-8, cross-platform)
- Participant list parsing and validation
- Participant data model

ISOLATION:
- No mail or CLI dependencies
- Read-only: nothing is ever written back
- Can be tested independently
"""

import json
from dataclasses import dataclass
from email.utils import parseaddr
from pathlib import Path
from typing import Any, List, Optional

from .errors import ConfigurationError


DEFAULT_PARTICIPANTS_FILE = Path("participants.json")


@dataclass(frozen=True)
class Participant:
    """One person in the draw. Identity is the uid."""
    uid: str
    name: str
    email: str
    group: Optional[str] = None

    def __str__(self) -> str:
        return self.name


def load_json(path: Path) -> Any:
    """Load JSON, raising ConfigurationError instead of returning a default"""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Participants file not found: {path}")
    try:
        # Explicit UTF-8 encoding for cross-platform compatibility
        text = path.read_text(encoding='utf-8').strip()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Could not read {path}: {e}") from e
    if not text:
        raise ConfigurationError(f"Participants file is empty: {path}")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e


def _validate_email(email: str, index: int) -> str:
    """A bare address, usable as a To header"""
    # CR/LF would let a value inject extra headers
    if "\r" in email or "\n" in email:
        raise ConfigurationError(f"Participant #{index + 1} has a line break in their email")
    _, address = parseaddr(email)
    if address != email or "@" not in address:
        raise ConfigurationError(f"Participant #{index + 1} has an invalid email: {email!r}")
    return email


def _parse_participant(entry: Any, index: int) -> Participant:
    if not isinstance(entry, dict):
        raise ConfigurationError(f"Participant #{index + 1} is not an object")

    # "uid" is the documented key, "id" is accepted as well
    uid = entry.get("uid", entry.get("id"))
    name = entry.get("name")
    email = entry.get("email")

    missing = [key for key, val in (("uid", uid), ("name", name), ("email", email))
               if val is None or str(val).strip() == ""]
    if missing:
        raise ConfigurationError(f"Participant #{index + 1} is missing: {', '.join(missing)}")

    email = _validate_email(str(email).strip(), index)

    group = entry.get("group")
    group = str(group).strip() if group is not None else None

    return Participant(
        uid=str(uid).strip(),
        name=str(name).strip(),
        email=email,
        group=group or None,
    )


def load_participants(path: Path = DEFAULT_PARTICIPANTS_FILE) -> List[Participant]:
    """
    Load the participant list from a JSON file.

    ACCEPTED SHAPES:
    [
        {"uid": 1, "name": "Alice", "email": "alice@example.com", "group": "smiths"},
        ...
    ]
    or the same list under a "participants" key.

    File order is kept; it becomes the giver order of the draw.

    Raises:
        ConfigurationError: unreadable file, wrong shape, missing fields, duplicate ids
    """
    data = load_json(path)

    if isinstance(data, dict):
        data = data.get("participants")
    if not isinstance(data, list):
        raise ConfigurationError(f"{path} must contain a list of participants")

    participants = [_parse_participant(entry, i) for i, entry in enumerate(data)]

    seen = set()
    duplicates = []
    for p in participants:
        if p.uid in seen:
            duplicates.append(p.uid)
        seen.add(p.uid)
    if duplicates:
        raise ConfigurationError(f"Duplicate participant ids: {', '.join(duplicates)}")

    return participants
