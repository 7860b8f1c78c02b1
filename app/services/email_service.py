"""
Outgoing mail for password reset links.

SMTP when configured, otherwise the message is only announced in the log
(recipient and subject; never the link, which carries a live token).
"""

import asyncio
import logging
import smtplib
import ssl
from contextlib import contextmanager
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Iterator, Optional, Protocol

from app.core.config import Settings

logger = logging.getLogger(__name__)

RESET_SUBJECT = "MedEcare - Password Reset Request"

RESET_HTML = """\
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h2 style="color: #1f6feb;">MedEcare</h2>
    <p>We received a request to reset the password of your roster account.</p>
    <p><a href="{link}">Choose a new password</a></p>
    <p style="font-size: 13px; color: #666;">Or paste this address into your browser:<br>{link}</p>
    <p style="font-size: 13px; color: #666;">
        The link works once and expires in {minutes} minutes.
        If you did not ask for it, ignore this message; your password stays the same.
    </p>
</body>
</html>
"""

RESET_TEXT = """\
MedEcare - Password Reset

We received a request to reset the password of your roster account.
Open this link to choose a new password:

{link}

The link works once and expires in {minutes} minutes.
If you did not ask for it, ignore this message; your password stays the same.
"""


def mask_email(address: str) -> str:
    return f"{address[:3]}***"


class ResetMailer(Protocol):
    async def send_reset_link(self, to_email: str, reset_link: str) -> bool:
        """Deliver a password reset link. Returns True when handed off."""


class EmailService:
    """ResetMailer backed by SMTP, falling back to the log when SMTP is unset."""

    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_password
        self.sender = settings.smtp_from_email
        self.sender_name = settings.smtp_from_name
        self.use_starttls = settings.smtp_use_tls
        self.reset_ttl_minutes = settings.password_reset_expire_minutes

        self.is_configured = all((self.host, self.port, self.user, self.password))
        if self.is_configured:
            logger.info(f"Email delivery via SMTP {self.host}:{self.port}")
        else:
            logger.warning("SMTP not configured - reset emails are only logged")

    # ─── Delivery ────────────────────────────────
    def _build_message(self, to_email: str, subject: str, html_body: str, text_body: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{self.sender_name} <{self.sender}>"
        message["To"] = to_email
        # Clients show the last alternative they understand
        message.attach(MIMEText(text_body, "plain"))
        message.attach(MIMEText(html_body, "html"))
        return message

    @contextmanager
    def _connect(self) -> Iterator[smtplib.SMTP]:
        context = ssl.create_default_context()
        if self.use_starttls:
            with smtplib.SMTP(self.host, self.port) as server:
                server.starttls(context=context)
                server.login(self.user, self.password)
                yield server
        else:
            # Implicit TLS, usually port 465
            with smtplib.SMTP_SSL(self.host, self.port, context=context) as server:
                server.login(self.user, self.password)
                yield server

    def _deliver(self, to_email: str, message: MIMEMultipart) -> bool:
        try:
            with self._connect() as server:
                server.sendmail(self.sender, to_email, message.as_string())
        except smtplib.SMTPAuthenticationError:
            logger.error("SMTP authentication failed - check SMTP_USER / SMTP_PASSWORD")
            return False
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(f"SMTP delivery to {mask_email(to_email)} failed: {exc}")
            return False
        logger.info(f"Email delivered to {mask_email(to_email)}")
        return True

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        """Send one message; False when delivery failed (never raises)."""
        if not self.is_configured:
            logger.info(f"[EMAIL] To: {mask_email(to_email)}, Subject: {subject}")
            return True

        message = self._build_message(to_email, subject, html_body, text_body or "")
        # smtplib blocks
        return await asyncio.to_thread(self._deliver, to_email, message)

    # ─── Reset links ─────────────────────────────
    async def send_reset_link(self, to_email: str, reset_link: str) -> bool:
        values = {"link": reset_link, "minutes": self.reset_ttl_minutes}
        return await self.send_email(
            to_email=to_email,
            subject=RESET_SUBJECT,
            html_body=RESET_HTML.format(**values),
            text_body=RESET_TEXT.format(**values),
        )
