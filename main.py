import argparse
import asyncio
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from secret_santa.assignments import (
    DEFAULT_MAX_ATTEMPTS, make_assignments, validate_assignment_possibility
)
from secret_santa.errors import ConfigurationError, UnsatisfiableConstraintError
from secret_santa.mailer import MailSettings, SecretSantaMailer
from secret_santa.storage import DEFAULT_PARTICIPANTS_FILE, load_participants

ENV_FILE = "config.env"

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_UNSATISFIABLE = 3


# ============ CONFIG ============
class Config:
    """Load config with validation and defaults"""
    # Only required when emails are actually sent
    _required = {
        "GMAIL_USER": (str, None),
        "GMAIL_APP_PASS": (str, None),
    }
    _optional = {
        "SMTP_HOST": (str, "smtp.gmail.com"),
        "SMTP_PORT": (int, 587),
        "SMTP_TIMEOUT": (int, 30),
        "SENDER_NAME": (str, "Secret Santa Bot"),
        "LOG_LEVEL": (str, "INFO"),
        "LOG_FILE": (str, "santa.log"),
        "MAX_ATTEMPTS": (int, DEFAULT_MAX_ATTEMPTS),
        "PARTICIPANTS_FILE": (str, str(DEFAULT_PARTICIPANTS_FILE)),
    }

    def __init__(self, dry_run: bool = False, env: Optional[Mapping[str, str]] = None):
        self.dry_run = dry_run
        self.env = os.environ if env is None else env
        self.data = {}
        self._load()

    def _load(self):
        missing = []
        for key in self._required:
            val = self.env.get(key)
            if not val or not val.strip():
                missing.append(key)
                continue
            # Clean string values (trim whitespace)
            self.data[key] = val.strip()

        if missing and not self.dry_run:
            raise ConfigurationError(f"Missing env vars: {', '.join(missing)} (set them in {ENV_FILE})")

        for key, (cast_type, default) in self._optional.items():
            val = self.env.get(key, default)
            if cast_type == int:
                try:
                    self.data[key] = int(val)
                except (TypeError, ValueError):
                    raise ConfigurationError(f"{key} must be an integer, got {val!r}") from None
                self._validate_int_config(key, self.data[key])
            else:
                self.data[key] = str(val).strip()

    def _validate_int_config(self, key: str, value: int):
        """Validate integer config values are within reasonable ranges"""
        validators = {
            "SMTP_PORT": (1, 65535),
            "SMTP_TIMEOUT": (1, 300),
            "MAX_ATTEMPTS": (1, 10_000_000),
        }

        if key in validators:
            min_val, max_val = validators[key]
            if not (min_val <= value <= max_val):
                raise ConfigurationError(f"{key}={value} is outside the allowed range ({min_val}-{max_val})")

    def mail_settings(self) -> Optional[MailSettings]:
        if "GMAIL_USER" not in self.data or "GMAIL_APP_PASS" not in self.data:
            return None
        return MailSettings(
            user=self.GMAIL_USER,
            app_password=self.GMAIL_APP_PASS,
            smtp_host=self.SMTP_HOST,
            smtp_port=self.SMTP_PORT,
            sender_name=self.SENDER_NAME,
            timeout=self.SMTP_TIMEOUT,
        )

    def __getattr__(self, name: str):
        key = name.upper()
        if key in self.data:
            return self.data[key]
        raise AttributeError(f"Config missing: {key}")


# ============ SETUP ============
def setup_logging(config: Config) -> logging.Logger:
    logger = logging.getLogger("santa")
    logger.setLevel(config.LOG_LEVEL.upper())

    # Prevent duplicate handlers
    if logger.handlers:
        return logger

    fmt = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # File handler with rotation
    if config.LOG_FILE:
        fh = logging.handlers.RotatingFileHandler(
            config.LOG_FILE, maxBytes=5_000_000, backupCount=5, encoding="utf-8"
        )
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    # Console handler
    ch = logging.StreamHandler(sys.stdout)
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    return logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="secret-santa",
        description="🎅 Run a Secret Santa draw and email the results to participants.",
    )
    parser.add_argument('--dry-run', '-d', action='store_true',
                        help='Run without sending any emails (assignments are logged instead).')
    parser.add_argument('--groups', '-g', action='store_true',
                        help="Enable the group exclusion rule (people in the same 'group' "
                             "are never assigned to each other).")
    parser.add_argument('--config', '-c', type=Path, default=None,
                        help='Participants JSON file (default: PARTICIPANTS_FILE or participants.json).')
    return parser


def print_dry_run_banner(logger: logging.Logger):
    logger.info("******************************")
    logger.info("*   RUNNING IN DRY MODE      *")
    logger.info("*   No emails will be sent.  *")
    logger.info("******************************")


def main(argv: Optional[List[str]] = None, transport=None) -> int:
    # --help exits here, before any config or files are touched
    args = build_parser().parse_args(argv)

    load_dotenv(ENV_FILE, override=True)

    try:
        config = Config(dry_run=args.dry_run)
    except ConfigurationError as e:
        print(f"Fatal: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    logger = setup_logging(config)

    participants_file = args.config or Path(config.PARTICIPANTS_FILE)
    try:
        participants = load_participants(participants_file)
    except ConfigurationError as e:
        logger.error(f"Error: {e}")
        return EXIT_CONFIG_ERROR

    if len(participants) < 2:
        logger.error("Error: You need at least 2 participants for a Secret Santa.")
        return EXIT_CONFIG_ERROR

    problem = validate_assignment_possibility(participants, enforce_groups=args.groups)
    if problem:
        logger.error(f"Error: {problem}")
        return EXIT_UNSATISFIABLE

    logger.info(f"Loaded {len(participants)} participants from {participants_file}")
    if args.dry_run:
        print_dry_run_banner(logger)

    try:
        assignments = make_assignments(
            participants,
            enforce_groups=args.groups,
            max_attempts=config.MAX_ATTEMPTS,
            logger=logger,
            verbose=args.dry_run,
        )
    except UnsatisfiableConstraintError as e:
        logger.error(f"Error: {e}")
        return EXIT_UNSATISFIABLE

    mailer = SecretSantaMailer(
        config.mail_settings(),
        dry_run=args.dry_run,
        transport=transport,
        logger=logger,
    )
    results = asyncio.run(mailer.send_all(assignments))

    failed = [r for r in results if not r.success]
    if args.dry_run:
        logger.info(f"Dry run complete: {len(results)} emails prepared, none sent.")
    else:
        logger.info(f"Emails sent: {len(results) - len(failed)}, failed: {len(failed)}")
    for r in failed:
        logger.warning(f"Not notified: {r.giver.name} ({r.giver.email}) - {r.error}")

    logger.info("All done!")
    return EXIT_OK


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
