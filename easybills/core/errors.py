"""Domain error taxonomy.

Every error carries the HTTP status it maps to so the API layer can
translate it with a single exception handler.
"""

from __future__ import annotations


class EasyBillsError(Exception):
    """Base class for errors raised by the claim workflow."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(EasyBillsError):
    """Malformed or missing input, or an illegal transition target."""

    status_code = 400


class InvalidTransitionError(ValidationError):
    """Raised when a claim cannot move from its current status to the target."""

    def __init__(self, from_status: str, to_status: str) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid transition: {from_status} -> {to_status}")


class ForbiddenError(EasyBillsError):
    """The actor does not own the claim or lacks the required role."""

    status_code = 403


class NotFoundError(EasyBillsError):
    """A claim or user does not exist."""

    status_code = 404


class ConflictError(EasyBillsError):
    """A write was based on a stale version of the claim."""

    status_code = 409


class DependencyError(EasyBillsError):
    """An external collaborator (email, storage, realtime) failed."""

    status_code = 502


class PersistenceError(EasyBillsError):
    """The database rejected or failed a write."""

    status_code = 500
