"""SQLAlchemy models for the EasyBills portal.

This package re-exports all models and enums from domain-specific modules
so that code can use ``from easybills.core.models import X``.
"""

from easybills.core.models.auth import User, UserRole
from easybills.core.models.claim import ClaimCategory, ClaimStatus, ExpenseClaim

__all__ = [
    "ClaimCategory",
    "ClaimStatus",
    "ExpenseClaim",
    "User",
    "UserRole",
]
