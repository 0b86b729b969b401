"""Receipt attachment and resubmission for claim owners."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from easybills.claims.domain import (
    EDITABLE_STATUSES,
    DocumentRecord,
    apply_status,
    append_audit_entry,
    append_document,
    audit_entries,
    build_audit_entry,
    documents,
    parse_amount,
    parse_category,
    parse_initial_status,
    require_date,
    require_text,
)
from easybills.claims.notifier import ClaimChange, ClaimNotifier
from easybills.claims.store import ClaimStore
from easybills.claims.workflow import Defer
from easybills.core.errors import DependencyError, EasyBillsError, ForbiddenError, ValidationError
from easybills.core.models import ClaimCategory, ClaimStatus, ExpenseClaim, User, UserRole
from easybills.storage.backend import StorageBackend, build_document_path, validate_upload

logger = logging.getLogger(__name__)

RESUBMISSION_NOTES = "Claim resubmitted for review."


@dataclass(frozen=True)
class Upload:
    """A file received from the client, not yet stored."""

    file_name: str
    content: bytes
    mime_type: str


@dataclass(frozen=True)
class ClaimEdit:
    """Core fields an owner may change while resubmitting."""

    category: ClaimCategory | str | None = None
    amount: Decimal | str | None = None
    description: str | None = None
    date_incurred: date | None = None
    notes: str | None = None


class DocumentAttachmentManager:
    """Owner-side claim mutations: creation, receipt attachment and resubmission."""

    def __init__(
        self,
        store: ClaimStore,
        storage: StorageBackend,
        notifier: ClaimNotifier | None = None,
        max_upload_bytes: int | None = None,
        defer: Defer | None = None,
    ) -> None:
        self._store = store
        self._storage = storage
        self._notifier = notifier
        self._max_upload_bytes = max_upload_bytes
        self._defer = defer

    async def submit_claim(
        self,
        owner: User,
        category: ClaimCategory | str | None,
        amount: Decimal | str | None,
        description: str | None,
        date_incurred: date | None,
        status: ClaimStatus | str | None = None,
        upload: Upload | None = None,
    ) -> ExpenseClaim:
        """Create a claim with an optional receipt.

        A submitted (not draft) claim triggers the submission confirmation
        and the reviewer broadcast once it is persisted.
        """
        initial_status = parse_initial_status(status)
        category = parse_category(category)
        amount = parse_amount(amount)
        description = require_text("description", description)
        date_incurred = require_date("date_incurred", date_incurred)

        claim_id = uuid.uuid4()
        uploaded = [await self.store_upload(claim_id, upload)] if upload is not None else []
        try:
            claim = await self._store.create(
                owner.id,
                category,
                amount,
                description,
                date_incurred,
                status=initial_status,
                documents=uploaded,
                claim_id=claim_id,
            )
        except EasyBillsError:
            await self._discard(uploaded)
            raise
        if initial_status == ClaimStatus.SUBMITTED:
            await self.announce(ClaimChange.capture(claim, owner, audit_entries(claim)[-1]))
        return claim

    async def attach_document(
        self,
        claim_id: uuid.UUID,
        actor_id: uuid.UUID,
        document: DocumentRecord,
    ) -> ExpenseClaim:
        """Append already-stored document metadata to the actor's own claim.

        Raises:
            NotFoundError: If the claim does not exist.
            ForbiddenError: If the actor does not own the claim.
        """
        claim = await self._store.get(claim_id)
        _require_owner(claim, actor_id)
        _record_document(claim, document)
        claim = await self._store.save(claim)
        logger.info("Document %s attached to claim %s", document.file_name, claim.id)
        return claim

    async def upload_document(
        self,
        claim_id: uuid.UUID,
        actor_id: uuid.UUID,
        file_name: str,
        content: bytes,
        mime_type: str,
    ) -> ExpenseClaim:
        """Validate and store an upload, then attach it to the claim.

        Ownership is checked before anything is written to storage, and the
        stored object is removed again if the claim update fails.
        """
        claim = await self._store.get(claim_id)
        _require_owner(claim, actor_id)
        document = await self.store_upload(claim.id, Upload(file_name, content, mime_type))
        try:
            return await self.attach_document(claim_id, actor_id, document)
        except EasyBillsError:
            await self._discard([document])
            raise

    async def store_upload(self, claim_id: uuid.UUID, upload: Upload) -> DocumentRecord:
        """Place an upload in object storage and describe it as a document record."""
        if self._max_upload_bytes is None:
            validate_upload(upload.file_name, upload.content, upload.mime_type)
        else:
            validate_upload(upload.file_name, upload.content, upload.mime_type, self._max_upload_bytes)
        stored = await self._storage.write(
            build_document_path(claim_id, upload.file_name),
            upload.content,
            upload.mime_type,
        )
        return DocumentRecord(
            file_name=upload.file_name,
            file_url=stored.url,
            storage_path=stored.path,
            uploaded_at=stored.stored_at,
            size=stored.size,
            mime_type=upload.mime_type,
        )

    async def resubmit(
        self,
        claim_id: uuid.UUID,
        actor_id: uuid.UUID,
        changes: ClaimEdit,
        upload: Upload | None = None,
    ) -> ExpenseClaim:
        """Edit a draft or referred-back claim and send it for review again.

        Raises:
            NotFoundError: If the claim does not exist.
            ForbiddenError: If the actor does not own the claim.
            ValidationError: If the claim is not editable or a field is invalid.
        """
        claim = await self._store.get(claim_id)
        _require_owner(claim, actor_id)
        if claim.status not in EDITABLE_STATUSES:
            raise ValidationError(
                f"Claim {claim_id} is {ClaimStatus(claim.status).value}; only draft or "
                "referred_back claims can be resubmitted"
            )

        # Validate every field before touching the claim or storage
        category = parse_category(changes.category) if changes.category is not None else None
        amount = parse_amount(changes.amount) if changes.amount is not None else None
        description = require_text("description", changes.description) if changes.description is not None else None
        date_incurred = require_date("date_incurred", changes.date_incurred) if changes.date_incurred else None

        owner = await self._store.get_owner(claim)
        document = await self.store_upload(claim.id, upload) if upload is not None else None

        if category is not None:
            claim.category = category
        if amount is not None:
            claim.amount = amount
        if description is not None:
            claim.description = description
        if date_incurred is not None:
            claim.date_incurred = date_incurred
        if document is not None:
            _record_document(claim, document)

        entry = apply_status(claim, ClaimStatus.SUBMITTED, UserRole.FACULTY.value, changes.notes or RESUBMISSION_NOTES)
        try:
            claim = await self._store.save(claim)
        except EasyBillsError:
            await self._discard([document] if document is not None else [])
            raise
        logger.info("Claim %s resubmitted by %s", claim.id, actor_id)

        await self.announce(ClaimChange.capture(claim, owner, entry))
        return claim

    async def list_documents(self, claim_id: uuid.UUID, actor: User) -> tuple[DocumentRecord, ...]:
        """Documents of a claim, visible to its owner and to reviewers."""
        claim = await self._store.get(claim_id)
        if claim.owner_id != actor.id and actor.role != UserRole.ACCOUNTS:
            raise ForbiddenError("You can only view documents of your own claims")
        return documents(claim)

    async def _discard(self, uploaded: list[DocumentRecord]) -> None:
        """Remove stored objects whose claim update never committed."""
        for document in uploaded:
            try:
                await self._storage.delete(document.storage_path)
            except DependencyError as exc:
                logger.warning("Could not remove orphaned upload %s: %s", document.storage_path, exc)
            else:
                logger.info("Removed upload %s after failed claim update", document.storage_path)

    async def announce(self, change: ClaimChange) -> None:
        """Fan out a submission confirmation, best-effort."""
        if self._notifier is None:
            return
        if self._defer is not None:
            self._defer(self._notifier.publish, change)
            return
        await self._notifier.publish(change)


def _require_owner(claim: ExpenseClaim, actor_id: uuid.UUID) -> None:
    if claim.owner_id != actor_id:
        raise ForbiddenError("Only the claim owner may modify this claim")


def _record_document(claim: ExpenseClaim, document: DocumentRecord) -> None:
    append_document(claim, document)
    append_audit_entry(
        claim,
        build_audit_entry(
            ClaimStatus(claim.status),
            UserRole.FACULTY.value,
            f"Document uploaded: {document.file_name}",
        ),
    )
