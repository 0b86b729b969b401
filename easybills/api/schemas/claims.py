"""Pydantic response and request models for claims and users."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_serializer

from easybills.core.models import ClaimCategory, ClaimStatus, UserRole


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime
    status: ClaimStatus
    changed_by: str = Field(alias="changedBy")
    notes: str


class DocumentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName")
    file_url: str = Field(alias="fileUrl")
    storage_path: str = Field(default="", alias="storagePath")
    uploaded_at: datetime = Field(alias="uploadedAt")
    size: int = 0
    mime_type: str = Field(default="application/octet-stream", alias="mimeType")


class OwnerSummary(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    name: str | None = None
    email: str


class ClaimResponse(BaseModel):
    """A claim with its documents and full audit trail."""

    model_config = {"from_attributes": True}

    id: UUID
    owner_id: UUID
    category: ClaimCategory
    amount: Decimal
    description: str
    date_incurred: date
    status: ClaimStatus
    documents: list[DocumentResponse] = []
    audit_trail: list[AuditEntryResponse] = []
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_serializer("amount")
    def _amount_as_string(self, amount: Decimal) -> str:
        return f"{amount:.2f}"


class ReviewerClaimResponse(ClaimResponse):
    """Claim as listed for Accounts, with the owner's name and email."""

    owner: OwnerSummary | None = None


class ClaimList(BaseModel):
    items: list[ReviewerClaimResponse]
    total: int


class StatusUpdateRequest(BaseModel):
    """Reviewer status change.

    ``status`` is a UI label (approved, more_info, paid, rejected) or a
    canonical status name.
    """

    status: str = Field(..., min_length=1)
    notes: str | None = Field(default=None, max_length=5000)
    version: int | None = Field(default=None, ge=1)


class DocumentList(BaseModel):
    claim_id: UUID
    documents: list[DocumentResponse]


class UserResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    email: str
    name: str | None = None
    picture: str | None = None
    role: UserRole
    is_active: bool


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    picture: str | None = Field(default=None, max_length=1024)


class TokenRequest(BaseModel):
    """Dev-mode sign-in by email."""

    email: EmailStr
    name: str | None = Field(default=None, max_length=255)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str


class MessageResponse(BaseModel):
    message: str
