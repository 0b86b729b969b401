"""Event payloads pushed to live portal sessions."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from easybills.claims.domain import AuditEntry

CLAIM_STATUS_UPDATED = "claimStatusUpdated"
CLAIM_UPDATED = "claimUpdated"


def claim_status_updated_event(
    claim_id: uuid.UUID | str,
    status: str,
    entry: AuditEntry,
) -> dict[str, Any]:
    """Event for the claim owner's own channel."""
    return {
        "type": CLAIM_STATUS_UPDATED,
        "claimId": str(claim_id),
        "status": str(status),
        "auditEntry": entry.to_dict(),
        "timestamp": datetime.now(UTC).isoformat(),
    }


def claim_updated_event(
    claim_id: uuid.UUID | str,
    owner_id: uuid.UUID | str,
    status: str,
) -> dict[str, Any]:
    """Event for every connected reviewer."""
    return {
        "type": CLAIM_UPDATED,
        "claimId": str(claim_id),
        "ownerId": str(owner_id),
        "status": str(status),
        "timestamp": datetime.now(UTC).isoformat(),
    }
