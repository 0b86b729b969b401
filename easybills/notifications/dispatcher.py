"""Claim status email dispatch.

Maps a canonical claim status to exactly one Jinja2 email template,
renders it and hands it to an ``EmailSender``. ``dispatch`` never raises:
rendering and delivery failures come back as a ``DispatchResult``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from easybills.core.errors import DependencyError
from easybills.core.models import ClaimStatus
from easybills.notifications.email import EmailSender

logger = logging.getLogger(__name__)

_TEMPLATES_DIR = Path(__file__).parent / "templates"


@dataclass(frozen=True)
class EmailTemplate:
    """A template file plus the subject line and header colour it uses."""

    name: str
    subject: str
    color: str = "#95a5a6"


APPROVAL = EmailTemplate("approval", "Claim #{claim_id} Approved", "#27ae60")
REJECTION = EmailTemplate("rejection", "Claim #{claim_id} Rejected", "#c0392b")
CLARIFICATION_REQUEST = EmailTemplate(
    "clarification_request", "Clarification Needed for Claim #{claim_id}", "#e74c3c"
)
PAYMENT_PROCESSED = EmailTemplate("payment_processed", "Claim #{claim_id} Paid", "#2ecc71")
SUBMISSION = EmailTemplate("submission", "Claim #{claim_id} Submitted", "#3498db")
STATUS_NOTIFICATION = EmailTemplate("status_notification", "Claim #{claim_id} Status Update: {status}")

DISPATCH_TABLE: dict[ClaimStatus, EmailTemplate] = {
    ClaimStatus.PENDING_PAYMENT: APPROVAL,
    ClaimStatus.REJECTED: REJECTION,
    ClaimStatus.REFERRED_BACK: CLARIFICATION_REQUEST,
    ClaimStatus.DISBURSED: PAYMENT_PROCESSED,
    ClaimStatus.SUBMITTED: SUBMISSION,
}


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of one notification attempt."""

    success: bool
    template: str
    error: str | None = None


def select_template(status: ClaimStatus | str) -> EmailTemplate:
    """Return the template for a status; unknown values get the generic one."""
    try:
        return DISPATCH_TABLE.get(ClaimStatus(status), STATUS_NOTIFICATION)
    except ValueError:
        return STATUS_NOTIFICATION


class NotificationDispatcher:
    """Render and send claim status emails."""

    def __init__(
        self,
        sender: EmailSender,
        portal_url: str = "",
        templates_dir: Path = _TEMPLATES_DIR,
    ) -> None:
        self._sender = sender
        self._portal_url = portal_url
        self._env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html"]),
        )

    def render(self, template: EmailTemplate, context: dict[str, Any]) -> tuple[str, str]:
        """Render a template into ``(subject, html)``."""
        values = {
            "claim_id": context.get("claim_id", ""),
            "status": str(context.get("status", "")),
            "notes": context.get("notes"),
            "amount": context.get("amount"),
            "email": context.get("email"),
            "portal_url": self._portal_url,
            "header_color": template.color,
        }
        subject = template.subject.format(claim_id=values["claim_id"], status=values["status"])
        html = self._env.get_template(f"{template.name}.html").render(**values)
        return subject, html

    async def dispatch(
        self,
        status: ClaimStatus | str,
        recipient_email: str,
        context: dict[str, Any],
    ) -> DispatchResult:
        """Send the email matching ``status`` to ``recipient_email``.

        Args:
            status: Canonical status the claim just moved to.
            recipient_email: The claim owner's registered address.
            context: Template values (claim_id, status, notes, amount).

        Returns:
            DispatchResult with ``success`` False and an ``error`` message
            when the email could not be rendered or sent.
        """
        template = select_template(status)
        if not recipient_email:
            logger.warning("No recipient for %s email on claim %s", template.name, context.get("claim_id"))
            return DispatchResult(success=False, template=template.name, error="Recipient email missing")

        try:
            subject, html = self.render(template, {"email": recipient_email, "status": status, **context})
            await self._sender.send(recipient_email, subject, html)
        except (DependencyError, TemplateError) as exc:
            logger.warning("Failed to send %s email to %s: %s", template.name, recipient_email, exc)
            return DispatchResult(success=False, template=template.name, error=str(exc))
        except Exception as exc:  # dispatch never raises
            logger.exception("Unexpected error sending %s email to %s", template.name, recipient_email)
            return DispatchResult(success=False, template=template.name, error=str(exc))

        return DispatchResult(success=True, template=template.name)
