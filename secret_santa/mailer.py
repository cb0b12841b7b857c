"""
Secret Santa Mailer - Assignment Notifications

RESPONSIBILITIES:
- Build one email per assignment (plain text + HTML)
- Send them one at a time, in giver order
- Isolate failures per recipient (one bad address never stops the batch)
- Dry run: log what would be sent, never touch SMTP

ISOLATION:
- Credentials arrive through MailSettings, never from the environment
- The transport is injectable so the send loop can be tested without SMTP
"""

import asyncio
import html
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from typing import List, Optional

from .assignments import Assignment
from .errors import DeliveryError
from .storage import Participant


SUBJECT = "Your Secret Santa Assignment is Here! 🎅"

log = logging.getLogger("santa")


@dataclass(frozen=True)
class MailSettings:
    user: str
    app_password: str
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    sender_name: str = "Secret Santa Bot"
    timeout: int = 30


@dataclass
class DeliveryResult:
    giver: Participant
    receiver: Participant
    success: bool
    error: Optional[str] = None
    dry_run: bool = False


def _text_body(giver: Participant, receiver: Participant) -> str:
    return (
        f"Hi {giver.name}!\n\n"
        f"You are the Secret Santa for...\n\n"
        f"** {receiver.name} **\n\n"
        f"Shhhh, it's a secret!\n\n"
        f"Happy holidays!"
    )


def _html_body(giver: Participant, receiver: Participant, sender_name: str) -> str:
    giver_name = html.escape(giver.name)
    receiver_name = html.escape(receiver.name)
    return f"""
        <div style="font-family: Arial, sans-serif; line-height: 1.6;">
          <h2>Hi {giver_name}!</h2>
          <p>Your Secret Santa assignment is here! 🎄</p>
          <p>You are the Secret Santa for...</p>
          <div style="font-size: 24px; font-weight: bold; margin: 20px 0; padding: 10px; background-color: #f4f4f4; border-radius: 5px;">
            {receiver_name}
          </div>
          <p>Shhhh, it's a secret!</p>
          <p>Happy holidays,<br>{html.escape(sender_name)} 🤖</p>
        </div>
    """


def build_message(assignment: Assignment, settings: MailSettings) -> EmailMessage:
    """Plain-text message with an HTML alternative, addressed to the giver"""
    giver, receiver = assignment.giver, assignment.receiver

    msg = EmailMessage()
    msg["From"] = formataddr((settings.sender_name, settings.user))
    msg["To"] = giver.email
    msg["Subject"] = SUBJECT
    msg.set_content(_text_body(giver, receiver))
    msg.add_alternative(_html_body(giver, receiver, settings.sender_name), subtype="html")
    return msg


class SmtpTransport:
    """
    Sends a single message over SMTP with STARTTLS.

    A new connection is opened per message, so one broken session can't
    poison the sends after it.
    """

    def __init__(self, settings: MailSettings):
        self.settings = settings

    def send(self, message: EmailMessage) -> None:
        s = self.settings
        try:
            with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=s.timeout) as server:
                server.starttls(context=ssl.create_default_context())
                server.login(s.user, s.app_password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(str(e) or e.__class__.__name__) from e


class SecretSantaMailer:
    """
    Notifies every giver of their receiver.

    Sends are awaited one by one in giver order. Each outcome is collected
    into a DeliveryResult; nothing is retried.
    """

    def __init__(self, settings: Optional[MailSettings], dry_run: bool = False,
                 transport=None, logger: Optional[logging.Logger] = None):
        if settings is None and not dry_run:
            raise ValueError("Mail settings are required unless running in dry-run mode")
        self.settings = settings
        self.dry_run = dry_run
        self.logger = logger or log
        self._transport = transport

    @property
    def transport(self):
        # Built lazily so dry runs never create one
        if self._transport is None:
            self._transport = SmtpTransport(self.settings)
        return self._transport

    async def send_one(self, assignment: Assignment) -> DeliveryResult:
        giver, receiver = assignment.giver, assignment.receiver

        if self.dry_run:
            self.logger.info(f'(DRY RUN) Would email {giver.name} ({giver.email}): "You got {receiver.name}"')
            return DeliveryResult(giver, receiver, success=True, dry_run=True)

        # One bad recipient (bad header, transport bug) must not stop the batch
        try:
            message = build_message(assignment, self.settings)
            await asyncio.to_thread(self.transport.send, message)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            self.logger.error(f"Error sending email to {giver.name} ({giver.email!r}): {error}")
            return DeliveryResult(giver, receiver, success=False, error=error)

        self.logger.info(f"Email sent successfully to {giver.name}")
        return DeliveryResult(giver, receiver, success=True)

    async def send_all(self, assignments: List[Assignment]) -> List[DeliveryResult]:
        self.logger.info("--- Sending Emails ---")
        results = []
        for assignment in assignments:
            results.append(await self.send_one(assignment))
        return results
