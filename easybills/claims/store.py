"""Persistence for expense claims.

Wraps an ``AsyncSession`` and enforces the creation-time invariants:
validated fields and a mandatory initial audit entry. ``save`` commits
and turns stale versioned updates into ``ConflictError``.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from easybills.claims.domain import (
    DocumentRecord,
    build_audit_entry,
    parse_amount,
    parse_category,
    parse_initial_status,
    require_date,
    require_text,
)
from easybills.core.errors import ConflictError, NotFoundError, PersistenceError
from easybills.core.models import ClaimCategory, ClaimStatus, ExpenseClaim, User, UserRole

logger = logging.getLogger(__name__)

INITIAL_NOTES: dict[ClaimStatus, str] = {
    ClaimStatus.SUBMITTED: "Claim submitted for processing.",
    ClaimStatus.DRAFT: "Claim saved as draft.",
}


class ClaimStore:
    """Keyed storage of ExpenseClaim rows."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        owner_id: uuid.UUID,
        category: ClaimCategory | str | None,
        amount: Decimal | str | float | None,
        description: str | None,
        date_incurred: date | None,
        status: ClaimStatus | str | None = None,
        documents: Iterable[DocumentRecord] = (),
        claim_id: uuid.UUID | None = None,
    ) -> ExpenseClaim:
        """Validate and insert a new claim with its initial audit entry.

        Raises:
            ValidationError: If a required field is missing or out of range.
            PersistenceError: If the insert fails.
        """
        initial_status = parse_initial_status(status)
        entry = build_audit_entry(initial_status, UserRole.FACULTY.value, INITIAL_NOTES[initial_status])

        claim = ExpenseClaim(
            id=claim_id or uuid.uuid4(),
            owner_id=owner_id,
            category=parse_category(category),
            amount=parse_amount(amount),
            description=require_text("description", description),
            date_incurred=require_date("date_incurred", date_incurred),
            status=initial_status,
            documents=[doc.to_dict() for doc in documents],
            audit_trail=[entry.to_dict()],
        )
        self._session.add(claim)
        await self._commit()
        await self._session.refresh(claim)
        logger.info("Claim %s created by %s with status %s", claim.id, owner_id, initial_status.value)
        return claim

    async def find_by_id(self, claim_id: uuid.UUID) -> ExpenseClaim | None:
        result = await self._session.execute(select(ExpenseClaim).where(ExpenseClaim.id == claim_id))
        return result.scalar_one_or_none()

    async def get(self, claim_id: uuid.UUID) -> ExpenseClaim:
        """Load a claim or raise ``NotFoundError``."""
        claim = await self.find_by_id(claim_id)
        if claim is None:
            raise NotFoundError(f"Claim {claim_id} not found")
        return claim

    async def get_owner(self, claim: ExpenseClaim) -> User:
        """Load the user who owns a claim or raise ``NotFoundError``."""
        result = await self._session.execute(select(User).where(User.id == claim.owner_id))
        owner = result.scalar_one_or_none()
        if owner is None:
            raise NotFoundError(f"Owner {claim.owner_id} of claim {claim.id} not found")
        return owner

    async def find_all_by_owner(
        self,
        owner_id: uuid.UUID,
        status: ClaimStatus | None = None,
    ) -> list[ExpenseClaim]:
        """Return every claim of one owner, newest first."""
        query = (
            select(ExpenseClaim)
            .options(selectinload(ExpenseClaim.owner))
            .where(ExpenseClaim.owner_id == owner_id)
        )
        if status is not None:
            query = query.where(ExpenseClaim.status == status)
        result = await self._session.execute(query.order_by(ExpenseClaim.created_at.desc()))
        return list(result.scalars().all())

    async def find_all(self, status: ClaimStatus | None = None) -> list[ExpenseClaim]:
        """Return all claims with their owners loaded, newest first."""
        query = select(ExpenseClaim).options(selectinload(ExpenseClaim.owner))
        if status is not None:
            query = query.where(ExpenseClaim.status == status)
        query = query.order_by(ExpenseClaim.created_at.desc())
        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def save(self, claim: ExpenseClaim, expected_version: int | None = None) -> ExpenseClaim:
        """Persist a mutated claim.

        Args:
            claim: The claim whose status, documents or audit trail changed.
            expected_version: Version the caller based its change on, if known.

        Raises:
            ConflictError: If the claim changed since ``expected_version`` or
                the versioned UPDATE matched no row.
            PersistenceError: If the database rejects the write.
        """
        if expected_version is not None and claim.version != expected_version:
            await self._session.rollback()
            raise ConflictError(
                f"Claim {claim.id} is at version {claim.version}, not {expected_version}"
            )
        await self._commit()
        await self._session.refresh(claim)
        return claim

    async def _commit(self) -> None:
        try:
            await self._session.commit()
        except StaleDataError as exc:
            await self._session.rollback()
            raise ConflictError("Claim was modified concurrently; reload and retry") from exc
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.exception("Failed to persist claim")
            raise PersistenceError("Failed to persist claim") from exc
