"""Best-effort fan-out of claim changes to email and realtime.

Runs after a change is committed. Every branch is isolated: a failing
email never stops the realtime push and nothing here raises.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from easybills.claims.domain import AuditEntry
from easybills.core.models import ClaimStatus, ExpenseClaim, User
from easybills.notifications.dispatcher import DispatchResult, NotificationDispatcher
from easybills.realtime.emitter import RealtimeEmitter
from easybills.realtime.events import claim_status_updated_event, claim_updated_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimChange:
    """Snapshot of a committed change, safe to use after the session closes."""

    claim_id: uuid.UUID
    owner_id: uuid.UUID
    owner_email: str
    status: ClaimStatus
    amount: Decimal
    entry: AuditEntry

    @classmethod
    def capture(cls, claim: ExpenseClaim, owner: User, entry: AuditEntry) -> ClaimChange:
        return cls(
            claim_id=claim.id,
            owner_id=claim.owner_id,
            owner_email=owner.email,
            status=ClaimStatus(claim.status),
            amount=claim.amount,
            entry=entry,
        )


@dataclass
class FanOutReport:
    """What happened to each side effect of one change."""

    email: DispatchResult | None = None
    realtime_errors: list[str] = field(default_factory=list)

    @property
    def realtime_ok(self) -> bool:
        return not self.realtime_errors


class ClaimNotifier:
    """Send the owner's email and push realtime events for a claim change."""

    def __init__(self, dispatcher: NotificationDispatcher, emitter: RealtimeEmitter) -> None:
        self._dispatcher = dispatcher
        self._emitter = emitter

    async def publish(self, change: ClaimChange, *, notify_owner: bool = True) -> FanOutReport:
        """Run the email dispatch and realtime emits concurrently.

        Args:
            change: The committed change.
            notify_owner: False to skip the email and owner push (reviewer
                broadcast only).
        """
        report = FanOutReport()
        names = ["broadcast"]
        tasks = [self._broadcast(change)]
        if notify_owner:
            names.extend(["owner", "email"])
            tasks.extend([self._emit_to_owner(change), self._send_email(change)])

        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        for name, outcome in zip(names, outcomes, strict=True):
            if isinstance(outcome, DispatchResult):
                report.email = outcome
            elif isinstance(outcome, BaseException):
                logger.warning("%s update for claim %s failed: %s", name, change.claim_id, outcome)
                if name == "email":
                    report.email = DispatchResult(success=False, template="", error=str(outcome))
                else:
                    report.realtime_errors.append(str(outcome))

        if report.email is not None and not report.email.success:
            logger.warning(
                "Email notification for claim %s (%s) not delivered: %s",
                change.claim_id,
                change.status.value,
                report.email.error,
            )
        return report

    async def _send_email(self, change: ClaimChange) -> DispatchResult:
        return await self._dispatcher.dispatch(
            change.status,
            change.owner_email,
            {
                "claim_id": str(change.claim_id),
                "status": change.status.value,
                "notes": change.entry.notes,
                "amount": f"{change.amount:.2f}",
            },
        )

    async def _emit_to_owner(self, change: ClaimChange) -> None:
        event = claim_status_updated_event(change.claim_id, change.status.value, change.entry)
        await self._emitter.emit_to_owner(change.owner_id, event)

    async def _broadcast(self, change: ClaimChange) -> None:
        event = claim_updated_event(change.claim_id, change.owner_id, change.status.value)
        await self._emitter.broadcast(event)
