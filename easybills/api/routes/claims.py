"""Expense claim API routes.

Provides:
- POST /api/v1/claims                      (Faculty: create, multipart)
- GET  /api/v1/claims                      (own claims, or all for Accounts)
- GET  /api/v1/claims/{id}                 (owner or Accounts)
- PUT  /api/v1/claims/{id}/status          (Accounts: review decision)
- PUT  /api/v1/claims/{id}                 (owner: edit and resubmit, multipart)
- POST /api/v1/claims/{id}/documents       (owner: attach a receipt)
- GET  /api/v1/claims/{id}/documents       (owner or Accounts)

Domain errors propagate to the application's ``EasyBillsError`` handler.
"""

from __future__ import annotations

from datetime import date
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from easybills.api.deps import get_claim_store, get_document_manager, get_transition_engine
from easybills.api.schemas.claims import ClaimList, ClaimResponse, DocumentList, StatusUpdateRequest
from easybills.claims.documents import ClaimEdit, DocumentAttachmentManager, Upload
from easybills.claims.store import ClaimStore
from easybills.claims.workflow import StatusTransitionEngine
from easybills.core.auth import get_current_user
from easybills.core.config import Settings, get_settings
from easybills.core.errors import ForbiddenError, ValidationError
from easybills.core.models import ClaimStatus, ExpenseClaim, User, UserRole
from easybills.core.permissions import can_view_claim, require_role
from easybills.storage.backend import check_upload_size

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/claims", tags=["claims"])


async def _read_upload(document: UploadFile | None, max_bytes: int) -> Upload | None:
    if document is None or not document.filename:
        return None
    # Oversized uploads are refused before being read into memory
    if document.size is not None:
        check_upload_size(document.size, max_bytes)
    content = await document.read()
    return Upload(
        file_name=document.filename,
        content=content,
        mime_type=document.content_type or "application/octet-stream",
    )


def _parse_status_filter(value: str | None) -> ClaimStatus | None:
    if not value:
        return None
    try:
        return ClaimStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown status filter: {value!r}") from exc


@router.post("", response_model=ClaimResponse, status_code=status.HTTP_201_CREATED)
async def create_claim(
    category: str = Form(...),
    amount: str = Form(...),
    description: str = Form(...),
    date_incurred: date = Form(...),
    claim_status: str | None = Form(default=None, alias="status"),
    document: UploadFile | None = File(default=None),
    manager: DocumentAttachmentManager = Depends(get_document_manager),
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> ExpenseClaim:
    """Create a claim, optionally with a receipt attached.

    ``status`` may be ``draft``; anything omitted is submitted for review.
    """
    return await manager.submit_claim(
        current_user,
        category,
        amount,
        description,
        date_incurred,
        status=claim_status,
        upload=await _read_upload(document, settings.max_upload_bytes),
    )


@router.get("", response_model=ClaimList)
async def list_claims(
    owner: str | None = Query(default=None, description="'me' to list only your own claims"),
    claim_status: str | None = Query(default=None, alias="status"),
    store: ClaimStore = Depends(get_claim_store),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    """List claims, newest first.

    Accounts users see every claim unless they pass ``owner=me``; everyone
    else always sees only their own.
    """
    status_filter = _parse_status_filter(claim_status)
    if owner == "me" or not current_user.is_reviewer:
        claims = await store.find_all_by_owner(current_user.id, status_filter)
    else:
        claims = await store.find_all(status_filter)
    return {"items": claims, "total": len(claims)}


@router.get("/{claim_id}", response_model=ClaimResponse)
async def get_claim(
    claim_id: UUID,
    store: ClaimStore = Depends(get_claim_store),
    current_user: User = Depends(get_current_user),
) -> ExpenseClaim:
    """Get a claim with its documents and audit trail."""
    claim = await store.get(claim_id)
    if not can_view_claim(current_user, claim):
        raise ForbiddenError("You can only view your own claims")
    return claim


@router.put("/{claim_id}/status", response_model=ClaimResponse)
async def update_claim_status(
    claim_id: UUID,
    payload: StatusUpdateRequest,
    engine: StatusTransitionEngine = Depends(get_transition_engine),
    reviewer: User = Depends(require_role(UserRole.ACCOUNTS)),
) -> ExpenseClaim:
    """Record a review decision (approved, more_info, paid, rejected)."""
    return await engine.transition(
        claim_id,
        payload.status,
        reviewer.role,
        notes=payload.notes,
        expected_version=payload.version,
    )


@router.put("/{claim_id}", response_model=ClaimResponse)
async def resubmit_claim(
    claim_id: UUID,
    category: str | None = Form(default=None),
    amount: str | None = Form(default=None),
    description: str | None = Form(default=None),
    date_incurred: date | None = Form(default=None),
    notes: str | None = Form(default=None),
    document: UploadFile | None = File(default=None),
    manager: DocumentAttachmentManager = Depends(get_document_manager),
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> ExpenseClaim:
    """Edit a draft or referred-back claim and send it for review again."""
    changes = ClaimEdit(
        category=category or None,
        amount=amount or None,
        description=description,
        date_incurred=date_incurred,
        notes=notes,
    )
    upload = await _read_upload(document, settings.max_upload_bytes)
    return await manager.resubmit(claim_id, current_user.id, changes, upload)


@router.post("/{claim_id}/documents", response_model=ClaimResponse, status_code=status.HTTP_201_CREATED)
async def upload_claim_document(
    claim_id: UUID,
    document: UploadFile = File(...),
    manager: DocumentAttachmentManager = Depends(get_document_manager),
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> ExpenseClaim:
    """Attach a receipt to one of the caller's claims."""
    upload = await _read_upload(document, settings.max_upload_bytes)
    if upload is None:
        raise ValidationError("No document uploaded")
    return await manager.upload_document(
        claim_id,
        current_user.id,
        upload.file_name,
        upload.content,
        upload.mime_type,
    )


@router.get("/{claim_id}/documents", response_model=DocumentList)
async def list_claim_documents(
    claim_id: UUID,
    manager: DocumentAttachmentManager = Depends(get_document_manager),
    current_user: User = Depends(get_current_user),
) -> dict[str, Any]:
    """List the receipts attached to a claim."""
    records = await manager.list_documents(claim_id, current_user)
    return {"claim_id": claim_id, "documents": [record.to_dict() for record in records]}
