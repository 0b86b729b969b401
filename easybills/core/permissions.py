"""Role checks for the two portal roles.

Faculty own claims; Accounts staff review them. Route handlers use
``require_role`` for role-gated endpoints and ``can_view_claim`` for
per-claim read access.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Depends, HTTPException, status

from easybills.core.auth import get_current_user
from easybills.core.models import ExpenseClaim, User, UserRole

logger = logging.getLogger(__name__)


def can_view_claim(user: User, claim: ExpenseClaim) -> bool:
    """Owners see their own claims; reviewers see every claim."""
    return claim.owner_id == user.id or user.is_reviewer


def require_role(role: UserRole) -> Any:
    """Create a FastAPI dependency that requires an exact role.

    Usage:
        @router.put("/status", dependencies=[Depends(require_role(UserRole.ACCOUNTS))])

    Args:
        role: The role the user must hold.

    Returns:
        A FastAPI dependency callable.
    """

    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role != role:
            logger.info("User %s (%s) denied: %s required", user.id, user.role, role.value)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient role: {role.value} required",
            )
        return user

    return _check
