"""Outbound email transports.

``SmtpEmailSender`` talks to an SMTP relay through :mod:`smtplib`, running
the blocking session in a worker thread. ``LoggingEmailSender`` is used
when no relay is configured and only logs what would have been sent.
"""

from __future__ import annotations

import asyncio
import logging
import re
import smtplib
from email.message import EmailMessage
from typing import Protocol, runtime_checkable

from easybills.core.config import Settings
from easybills.core.errors import DependencyError

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")


@runtime_checkable
class EmailSender(Protocol):
    """Sends one HTML email.

    Implementations raise ``DependencyError`` when the message could not
    be handed to the transport.
    """

    async def send(self, to: str, subject: str, html: str) -> None: ...


def html_to_text(html: str) -> str:
    """Crude plain-text alternative for clients that do not render HTML."""
    text = _TAG_RE.sub("", html)
    return _BLANK_LINES_RE.sub("\n\n", text).strip()


def build_message(sender: str, to: str, subject: str, html: str) -> EmailMessage:
    message = EmailMessage()
    message["From"] = sender
    message["To"] = to
    message["Subject"] = subject
    message.set_content(html_to_text(html))
    message.add_alternative(html, subtype="html")
    return message


class SmtpEmailSender:
    """Deliver email through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        sender: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._sender = sender or username
        self._use_tls = use_tls
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> SmtpEmailSender:
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password.get_secret_value(),
            sender=settings.email_from,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout_seconds,
        )

    async def send(self, to: str, subject: str, html: str) -> None:
        message = build_message(self._sender, to, subject, html)
        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as exc:
            raise DependencyError(f"SMTP delivery to {to} failed: {exc}") from exc
        logger.info("Email '%s' sent to %s", subject, to)

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
            if self._use_tls:
                smtp.starttls()
            if self._username:
                smtp.login(self._username, self._password)
            smtp.send_message(message)


class LoggingEmailSender:
    """Log emails instead of sending them (local development)."""

    async def send(self, to: str, subject: str, html: str) -> None:
        logger.info("Email delivery disabled; would send '%s' to %s", subject, to)


def create_email_sender(settings: Settings) -> EmailSender:
    """Pick the SMTP transport when a relay is configured."""
    if settings.email_enabled:
        return SmtpEmailSender.from_settings(settings)
    logger.warning("SMTP host not configured; emails will only be logged")
    return LoggingEmailSender()
