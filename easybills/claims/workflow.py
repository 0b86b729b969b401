"""Claim status transition engine.

Applies a reviewer's status change to a claim: resolves the caller's
label to a canonical status, checks the state machine, appends the audit
entry, commits, and only then fans out the email and realtime updates.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import Any

from easybills.claims.domain import (
    apply_status,
    is_reviewer_role,
    resolve_status_label,
    validate_review_transition,
)
from easybills.claims.notifier import ClaimChange, ClaimNotifier
from easybills.claims.store import ClaimStore
from easybills.core.errors import ConflictError, ForbiddenError
from easybills.core.models import ClaimStatus, ExpenseClaim, UserRole

logger = logging.getLogger(__name__)

# Schedules a coroutine function to run later, e.g. BackgroundTasks.add_task
Defer = Callable[..., Any]


class StatusTransitionEngine:
    """Validates and applies reviewer status changes."""

    def __init__(
        self,
        store: ClaimStore,
        notifier: ClaimNotifier,
        defer: Defer | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._defer = defer

    async def transition(
        self,
        claim_id: uuid.UUID,
        requested_label: str,
        actor_role: UserRole | str,
        notes: str | None = None,
        expected_version: int | None = None,
    ) -> ExpenseClaim:
        """Move a claim to the status named by ``requested_label``.

        Args:
            claim_id: Claim to update.
            requested_label: UI label (``approved``, ``more_info``, ``paid``,
                ``rejected``) or a canonical status name.
            actor_role: Role of the acting user; only Accounts may review.
            notes: Reviewer notes; a default is generated when empty.
            expected_version: Claim version the reviewer looked at.

        Returns:
            The persisted claim. Notification outcomes never change it.

        Raises:
            ForbiddenError: If the actor is not a reviewer.
            ValidationError: If the label is unknown or the move is illegal.
            NotFoundError: If the claim or its owner does not exist.
            ConflictError: If the claim changed since ``expected_version``.
            PersistenceError: If the commit fails.
        """
        if not is_reviewer_role(actor_role):
            raise ForbiddenError(f"Role {actor_role} may not change claim status")

        target = resolve_status_label(requested_label)
        claim = await self._store.get(claim_id)
        owner = await self._store.get_owner(claim)

        if expected_version is not None and claim.version != expected_version:
            raise ConflictError(f"Claim {claim_id} is at version {claim.version}, not {expected_version}")

        previous = ClaimStatus(claim.status)
        validate_review_transition(previous, target)

        entry = apply_status(claim, target, str(actor_role), notes)
        claim = await self._store.save(claim, expected_version)
        logger.info("Claim %s: %s -> %s by %s", claim.id, previous.value, target.value, actor_role)

        await self._fan_out(ClaimChange.capture(claim, owner, entry))
        return claim

    async def _fan_out(self, change: ClaimChange) -> None:
        if self._defer is not None:
            self._defer(self._notifier.publish, change)
            return
        await self._notifier.publish(change)
