"""Tests for the claim domain rules (easybills/claims/domain.py)."""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from easybills.claims.domain import (
    REVIEW_TRANSITIONS,
    AuditEntry,
    DocumentRecord,
    append_document,
    apply_status,
    audit_entries,
    build_audit_entry,
    documents,
    is_reviewer_role,
    parse_amount,
    parse_category,
    parse_initial_status,
    require_date,
    require_text,
    resolve_status_label,
    validate_review_transition,
)
from easybills.core.errors import InvalidTransitionError, ValidationError
from easybills.core.models import ClaimCategory, ClaimStatus, UserRole

from conftest import make_claim, make_user


class TestResolveStatusLabel:
    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("approved", ClaimStatus.PENDING_PAYMENT),
            ("more_info", ClaimStatus.REFERRED_BACK),
            ("paid", ClaimStatus.DISBURSED),
            ("rejected", ClaimStatus.REJECTED),
        ],
    )
    def test_ui_labels(self, label: str, expected: ClaimStatus) -> None:
        assert resolve_status_label(label) == expected

    def test_canonical_names_pass_through(self) -> None:
        assert resolve_status_label("pending_payment") == ClaimStatus.PENDING_PAYMENT
        assert resolve_status_label("disbursed") == ClaimStatus.DISBURSED

    def test_case_and_whitespace_ignored(self) -> None:
        assert resolve_status_label("  Approved ") == ClaimStatus.PENDING_PAYMENT

    @pytest.mark.parametrize("label", ["archived", "", "approve"])
    def test_unknown_label_rejected(self, label: str) -> None:
        with pytest.raises(ValidationError):
            resolve_status_label(label)


class TestFieldParsing:
    def test_amount_quantized_half_up(self) -> None:
        assert parse_amount("10.005") == Decimal("10.01")
        assert parse_amount(500) == Decimal("500.00")

    @pytest.mark.parametrize("value", [None, "", "0", "-5", "abc", "NaN"])
    def test_invalid_amounts(self, value: object) -> None:
        with pytest.raises(ValidationError):
            parse_amount(value)  # type: ignore[arg-type]

    def test_category(self) -> None:
        assert parse_category("Registration Fees") == ClaimCategory.REGISTRATION_FEES
        with pytest.raises(ValidationError, match="expected one of"):
            parse_category("Food")
        with pytest.raises(ValidationError):
            parse_category(None)

    def test_initial_status(self) -> None:
        assert parse_initial_status(None) == ClaimStatus.SUBMITTED
        assert parse_initial_status("draft") == ClaimStatus.DRAFT
        with pytest.raises(ValidationError):
            parse_initial_status("pending_payment")

    def test_required_text_and_date(self) -> None:
        assert require_text("description", "  Taxi  ") == "Taxi"
        with pytest.raises(ValidationError):
            require_text("description", "   ")
        assert require_date("date_incurred", date(2026, 1, 1)) == date(2026, 1, 1)
        with pytest.raises(ValidationError):
            require_date("date_incurred", None)


class TestAuditTrail:
    def test_default_note(self) -> None:
        entry = build_audit_entry(ClaimStatus.REJECTED, "Accounts")
        assert entry.notes == "Status changed to rejected"
        assert entry.timestamp.tzinfo is not None

    def test_entry_dict_keys(self) -> None:
        entry = AuditEntry(datetime(2026, 1, 1, tzinfo=UTC), ClaimStatus.SUBMITTED, "Faculty", "hi")
        assert entry.to_dict() == {
            "timestamp": "2026-01-01T00:00:00+00:00",
            "status": "submitted",
            "changedBy": "Faculty",
            "notes": "hi",
        }

    def test_apply_status_appends_and_replaces_list(self) -> None:
        """The stored list is replaced, never mutated in place."""
        claim = make_claim(make_user())
        original = claim.audit_trail

        entry = apply_status(claim, ClaimStatus.PENDING_PAYMENT, "Accounts", "ok")

        assert claim.status == ClaimStatus.PENDING_PAYMENT
        assert claim.audit_trail is not original
        assert len(original) == 1
        assert audit_entries(claim)[-1] == entry
        assert audit_entries(claim)[-1].status == claim.status

    def test_append_document(self) -> None:
        claim = make_claim(make_user())
        record = DocumentRecord(
            file_name="receipt.pdf",
            file_url="http://files/receipt.pdf",
            storage_path="claims/1/receipt.pdf",
            uploaded_at=datetime(2026, 1, 1, tzinfo=UTC),
            size=3,
            mime_type="application/pdf",
        )
        append_document(claim, record)
        assert documents(claim) == (record,)
        assert claim.documents[0]["fileName"] == "receipt.pdf"


class TestTransitions:
    @pytest.mark.parametrize("source", [ClaimStatus.SUBMITTED, ClaimStatus.VERIFIED])
    def test_review_targets(self, source: ClaimStatus) -> None:
        for target in (ClaimStatus.PENDING_PAYMENT, ClaimStatus.REFERRED_BACK, ClaimStatus.REJECTED):
            validate_review_transition(source, target)

    def test_pending_payment_only_to_disbursed(self) -> None:
        validate_review_transition(ClaimStatus.PENDING_PAYMENT, ClaimStatus.DISBURSED)
        with pytest.raises(InvalidTransitionError):
            validate_review_transition(ClaimStatus.PENDING_PAYMENT, ClaimStatus.REJECTED)

    @pytest.mark.parametrize("terminal", [ClaimStatus.REJECTED, ClaimStatus.DISBURSED])
    def test_terminal_states_have_no_exits(self, terminal: ClaimStatus) -> None:
        assert REVIEW_TRANSITIONS[terminal] == frozenset()
        with pytest.raises(InvalidTransitionError):
            validate_review_transition(terminal, ClaimStatus.PENDING_PAYMENT)

    def test_verified_is_never_a_target(self) -> None:
        assert all(ClaimStatus.VERIFIED not in targets for targets in REVIEW_TRANSITIONS.values())

    def test_reviewer_role(self) -> None:
        assert is_reviewer_role(UserRole.ACCOUNTS)
        assert is_reviewer_role("Accounts")
        assert not is_reviewer_role(UserRole.FACULTY)
