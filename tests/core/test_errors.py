"""Tests for the domain error taxonomy."""

from __future__ import annotations

import pytest

from easybills.core.errors import (
    ConflictError,
    DependencyError,
    EasyBillsError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)


@pytest.mark.parametrize(
    ("error_cls", "status_code"),
    [
        (ValidationError, 400),
        (ForbiddenError, 403),
        (NotFoundError, 404),
        (ConflictError, 409),
        (DependencyError, 502),
        (PersistenceError, 500),
    ],
)
def test_status_codes(error_cls: type[EasyBillsError], status_code: int) -> None:
    error = error_cls("boom")
    assert isinstance(error, EasyBillsError)
    assert error.status_code == status_code
    assert error.message == "boom"


def test_invalid_transition_is_a_validation_error() -> None:
    error = InvalidTransitionError("rejected", "pending_payment")
    assert isinstance(error, ValidationError)
    assert error.status_code == 400
    assert error.from_status == "rejected"
    assert error.to_status == "pending_payment"
    assert str(error) == "Invalid transition: rejected -> pending_payment"
