"""Auth models: UserRole enum and User."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Enum, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from easybills.core.database import Base

if TYPE_CHECKING:
    from easybills.core.models.claim import ExpenseClaim


class UserRole(enum.StrEnum):
    """Portal roles. Values double as the ``changedBy`` label in audit entries."""

    FACULTY = "Faculty"
    ACCOUNTS = "Accounts"


class User(Base):
    """A portal user: a faculty member submitting claims or an Accounts reviewer."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    picture: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="userrole", values_callable=lambda e: [x.value for x in e]),
        default=UserRole.FACULTY,
        insert_default=UserRole.FACULTY,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, insert_default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Relationships
    claims: Mapped[list[ExpenseClaim]] = relationship("ExpenseClaim", back_populates="owner")

    @property
    def is_reviewer(self) -> bool:
        return self.role == UserRole.ACCOUNTS

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"
