"""Claim domain rules: audit entries, document records, status aliasing
and the transition table.

The claim row stores ``documents`` and ``audit_trail`` as JSON lists. The
helpers here expose them as immutable tuples of frozen dataclasses and
append by assigning a brand-new list, never by mutating the stored one.

State machine::

    draft -> submitted -> pending_payment -> disbursed
                       -> referred_back -> submitted
                       -> rejected
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from easybills.core.errors import InvalidTransitionError, ValidationError
from easybills.core.models import ClaimCategory, ClaimStatus, ExpenseClaim, UserRole

# UI labels -> canonical states
STATUS_ALIASES: dict[str, ClaimStatus] = {
    "approved": ClaimStatus.PENDING_PAYMENT,
    "more_info": ClaimStatus.REFERRED_BACK,
    "paid": ClaimStatus.DISBURSED,
    "rejected": ClaimStatus.REJECTED,
}

# Reviewer transitions: from_status -> allowed to_statuses
REVIEW_TRANSITIONS: dict[ClaimStatus, frozenset[ClaimStatus]] = {
    ClaimStatus.DRAFT: frozenset(),
    ClaimStatus.SUBMITTED: frozenset(
        {ClaimStatus.PENDING_PAYMENT, ClaimStatus.REFERRED_BACK, ClaimStatus.REJECTED}
    ),
    ClaimStatus.VERIFIED: frozenset(
        {ClaimStatus.PENDING_PAYMENT, ClaimStatus.REFERRED_BACK, ClaimStatus.REJECTED}
    ),
    ClaimStatus.PENDING_PAYMENT: frozenset({ClaimStatus.DISBURSED}),
    ClaimStatus.REFERRED_BACK: frozenset(),
    ClaimStatus.REJECTED: frozenset(),
    ClaimStatus.DISBURSED: frozenset(),
}

TERMINAL_STATUSES = frozenset({ClaimStatus.REJECTED, ClaimStatus.DISBURSED})
EDITABLE_STATUSES = frozenset({ClaimStatus.REFERRED_BACK, ClaimStatus.DRAFT})
INITIAL_STATUSES = frozenset({ClaimStatus.DRAFT, ClaimStatus.SUBMITTED})

AMOUNT_QUANTUM = Decimal("0.01")


@dataclass(frozen=True)
class AuditEntry:
    """One immutable line of a claim's audit trail."""

    timestamp: datetime
    status: ClaimStatus
    changed_by: str
    notes: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "status": self.status.value,
            "changedBy": self.changed_by,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditEntry:
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            status=ClaimStatus(data["status"]),
            changed_by=data.get("changedBy", "system"),
            notes=data.get("notes") or "",
        )


@dataclass(frozen=True)
class DocumentRecord:
    """Metadata for a receipt already placed in object storage."""

    file_name: str
    file_url: str
    storage_path: str
    uploaded_at: datetime
    size: int
    mime_type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "fileName": self.file_name,
            "fileUrl": self.file_url,
            "storagePath": self.storage_path,
            "uploadedAt": self.uploaded_at.isoformat(),
            "size": self.size,
            "mimeType": self.mime_type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DocumentRecord:
        return cls(
            file_name=data["fileName"],
            file_url=data["fileUrl"],
            storage_path=data.get("storagePath", ""),
            uploaded_at=datetime.fromisoformat(data["uploadedAt"]),
            size=int(data.get("size", 0)),
            mime_type=data.get("mimeType", "application/octet-stream"),
        )


# ---------------------------------------------------------------------------
# Field parsing
# ---------------------------------------------------------------------------


def resolve_status_label(label: str) -> ClaimStatus:
    """Map a caller label (``approved``, ``more_info``, ...) to a canonical state.

    Canonical state names are accepted as-is. Anything else is rejected.

    Raises:
        ValidationError: If the label matches neither an alias nor a state.
    """
    normalized = (label or "").strip().lower()
    if normalized in STATUS_ALIASES:
        return STATUS_ALIASES[normalized]
    try:
        return ClaimStatus(normalized)
    except ValueError as exc:
        raise ValidationError(f"Unknown status: {label!r}") from exc


def parse_category(value: str | ClaimCategory | None) -> ClaimCategory:
    if value is None or value == "":
        raise ValidationError("category is required")
    try:
        return ClaimCategory(value)
    except ValueError as exc:
        allowed = ", ".join(c.value for c in ClaimCategory)
        raise ValidationError(f"Invalid category {value!r}; expected one of: {allowed}") from exc


def parse_amount(value: Decimal | str | float | int | None) -> Decimal:
    """Quantize an amount to two decimal places and require it to be positive."""
    if value is None or value == "":
        raise ValidationError("amount is required")
    try:
        amount = Decimal(str(value)).quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("amount must be greater than zero")
    return amount


def parse_initial_status(value: str | ClaimStatus | None) -> ClaimStatus:
    if value is None or value == "":
        return ClaimStatus.SUBMITTED
    try:
        status = ClaimStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid status: {value!r}") from exc
    if status not in INITIAL_STATUSES:
        raise ValidationError(f"A new claim must be 'draft' or 'submitted', not {status.value!r}")
    return status


def require_text(name: str, value: str | None) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{name} is required")
    return value.strip()


def require_date(name: str, value: date | None) -> date:
    if value is None:
        raise ValidationError(f"{name} is required")
    return value


# ---------------------------------------------------------------------------
# Audit trail / documents
# ---------------------------------------------------------------------------


def build_audit_entry(
    status: ClaimStatus,
    changed_by: str,
    notes: str | None = None,
) -> AuditEntry:
    """Build an audit entry stamped with the current UTC time."""
    return AuditEntry(
        timestamp=datetime.now(UTC),
        status=status,
        changed_by=changed_by,
        notes=notes or f"Status changed to {status.value}",
    )


def audit_entries(claim: ExpenseClaim) -> tuple[AuditEntry, ...]:
    return tuple(AuditEntry.from_dict(item) for item in claim.audit_trail or [])


def documents(claim: ExpenseClaim) -> tuple[DocumentRecord, ...]:
    return tuple(DocumentRecord.from_dict(item) for item in claim.documents or [])


def append_audit_entry(claim: ExpenseClaim, entry: AuditEntry) -> None:
    """Append an entry by replacing the stored list with a new one."""
    claim.audit_trail = [*(claim.audit_trail or []), entry.to_dict()]


def append_document(claim: ExpenseClaim, document: DocumentRecord) -> None:
    """Append a document record by replacing the stored list with a new one."""
    claim.documents = [*(claim.documents or []), document.to_dict()]


def apply_status(claim: ExpenseClaim, status: ClaimStatus, changed_by: str, notes: str | None = None) -> AuditEntry:
    """Set ``claim.status`` and record the change as the newest audit entry."""
    entry = build_audit_entry(status, changed_by, notes)
    append_audit_entry(claim, entry)
    claim.status = status
    return entry


def validate_review_transition(from_status: ClaimStatus, to_status: ClaimStatus) -> None:
    """Check a reviewer transition against the state machine.

    Raises:
        InvalidTransitionError: If ``to_status`` is not reachable from ``from_status``.
    """
    allowed = REVIEW_TRANSITIONS.get(ClaimStatus(from_status), frozenset())
    if to_status not in allowed:
        raise InvalidTransitionError(ClaimStatus(from_status).value, to_status.value)


def is_reviewer_role(role: str | UserRole) -> bool:
    return str(role) == UserRole.ACCOUNTS.value
