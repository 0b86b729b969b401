"""Expense claim model with status, document and audit-trail columns."""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Index, Integer, Numeric, Text, func
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from easybills.core.database import Base
from easybills.core.models.auth import User


class ClaimCategory(enum.StrEnum):
    """Expense categories a claim can be filed under."""

    TRAVEL = "Travel"
    STATIONERY = "Stationery"
    REGISTRATION_FEES = "Registration Fees"
    ACADEMIC_EVENTS = "Academic Events"
    OTHER = "Other"


class ClaimStatus(enum.StrEnum):
    """Canonical claim lifecycle states."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    VERIFIED = "verified"  # Legacy rows only; never a transition target
    PENDING_PAYMENT = "pending_payment"
    REFERRED_BACK = "referred_back"
    REJECTED = "rejected"
    DISBURSED = "disbursed"


class ExpenseClaim(Base):
    """A faculty member's reimbursement request.

    ``documents`` and ``audit_trail`` are JSON lists that are only ever
    replaced as a whole (see ``easybills.claims.domain``), so SQLAlchemy
    sees every change without in-place mutation tracking. ``version`` is
    the optimistic-concurrency token checked on every UPDATE.
    """

    __tablename__ = "expense_claims"
    __table_args__ = (
        Index("ix_expense_claims_owner_id", "owner_id"),
        Index("ix_expense_claims_status", "status"),
        Index("ix_expense_claims_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    category: Mapped[ClaimCategory] = mapped_column(
        Enum(ClaimCategory, name="claimcategory", values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    date_incurred: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[ClaimStatus] = mapped_column(
        Enum(ClaimStatus, name="claimstatus", values_callable=lambda e: [x.value for x in e]),
        default=ClaimStatus.SUBMITTED,
        nullable=False,
        server_default="submitted",
    )
    documents: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    audit_trail: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Relationships
    owner: Mapped[User] = relationship("User", back_populates="claims")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<ExpenseClaim(id={self.id}, status={self.status}, amount={self.amount})>"
