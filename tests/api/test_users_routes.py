"""Tests for the current-user profile routes."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from easybills.core.models import User


@pytest.mark.asyncio
async def test_get_me(client: AsyncClient, faculty_user: User) -> None:
    response = await client.get("/api/v1/users/me")
    assert response.status_code == 200
    body = response.json()
    assert body["id"] == str(faculty_user.id)
    assert body["role"] == "Faculty"
    assert body["email"] == "faculty@uni.edu"


@pytest.mark.asyncio
async def test_update_name(client: AsyncClient, mock_db_session: AsyncMock, faculty_user: User) -> None:
    mock_db_session.execute.return_value.scalar_one_or_none.return_value = faculty_user

    response = await client.patch("/api/v1/users/me", json={"name": "Dr. Test"})

    assert response.status_code == 200
    assert response.json()["name"] == "Dr. Test"
    assert faculty_user.name == "Dr. Test"
    mock_db_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_role_is_not_editable(client: AsyncClient, mock_db_session: AsyncMock, faculty_user: User) -> None:
    mock_db_session.execute.return_value.scalar_one_or_none.return_value = faculty_user
    response = await client.patch("/api/v1/users/me", json={"role": "Accounts"})
    assert response.status_code == 200
    assert response.json()["role"] == "Faculty"


@pytest.mark.asyncio
async def test_update_missing_user(client: AsyncClient) -> None:
    response = await client.patch("/api/v1/users/me", json={"name": "x"})
    assert response.status_code == 404
