"""Tests for the role checks (easybills/core/permissions.py)."""

from __future__ import annotations

from fastapi import HTTPException
import pytest

from easybills.core.models import UserRole
from easybills.core.permissions import can_view_claim, require_role

from conftest import make_claim, make_user


class TestCanViewClaim:
    def test_owner_can_view(self) -> None:
        owner = make_user()
        assert can_view_claim(owner, make_claim(owner)) is True

    def test_other_faculty_cannot_view(self) -> None:
        owner = make_user()
        other = make_user(email="other@uni.edu")
        assert can_view_claim(other, make_claim(owner)) is False

    def test_reviewer_can_view_any(self) -> None:
        owner = make_user()
        reviewer = make_user(UserRole.ACCOUNTS, "accounts@uni.edu")
        assert can_view_claim(reviewer, make_claim(owner)) is True


class TestRequireRole:
    @pytest.mark.asyncio
    async def test_accepts_matching_role(self) -> None:
        reviewer = make_user(UserRole.ACCOUNTS, "accounts@uni.edu")
        check = require_role(UserRole.ACCOUNTS)
        assert await check(reviewer) is reviewer

    @pytest.mark.asyncio
    async def test_rejects_other_role(self) -> None:
        check = require_role(UserRole.ACCOUNTS)
        with pytest.raises(HTTPException) as exc_info:
            await check(make_user())
        assert exc_info.value.status_code == 403
        assert "Accounts" in exc_info.value.detail
