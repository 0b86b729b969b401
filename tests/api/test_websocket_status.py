"""Tests for the WebSocket connection bookkeeping and status route."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import AsyncClient

from easybills.api.routes.websocket import ConnectionManager, authenticate_socket, channels_for
from easybills.core.auth import create_access_token, create_refresh_token
from easybills.core.config import Settings
from easybills.core.models import User, UserRole
from easybills.core.redis import CHANNEL_REVIEWERS, user_channel

from conftest import TEST_JWT_SECRET, MockSessionFactory, make_user


class TestChannels:
    def test_faculty_listens_on_own_channel(self) -> None:
        user = make_user()
        assert channels_for(user) == [user_channel(user.id)]

    def test_accounts_also_listens_to_reviewers(self) -> None:
        user = make_user(UserRole.ACCOUNTS, "accounts@uni.edu")
        assert channels_for(user) == [user_channel(user.id), CHANNEL_REVIEWERS]


class TestConnectionManager:
    @pytest.mark.asyncio
    async def test_connect_and_disconnect(self) -> None:
        manager = ConnectionManager()
        first, second = MagicMock(accept=AsyncMock()), MagicMock(accept=AsyncMock())

        await manager.connect(first, "u-1")
        await manager.connect(second, "u-1")
        assert manager.get_connection_count("u-1") == 2
        assert manager.active_connections == 2

        manager.disconnect(first, "u-1")
        assert manager.get_connection_count("u-1") == 1
        manager.disconnect(second, "u-1")
        assert manager.get_user_ids() == []
        first.accept.assert_awaited_once()


@pytest.mark.asyncio
async def test_status_route(client: AsyncClient) -> None:
    response = await client.get("/api/v1/ws/status")
    assert response.status_code == 200
    assert response.json() == {"active_connections": 0, "user_ids": []}


class TestAuthenticateSocket:
    @pytest.fixture(autouse=True)
    def _settings(self) -> Any:
        settings = Settings(jwt_secret_key=TEST_JWT_SECRET, jwt_algorithm="HS256")
        with patch("easybills.api.routes.websocket.get_settings", return_value=settings):
            yield settings

    @staticmethod
    def _socket(user: User | None, revoked: bool = False) -> MagicMock:
        result = MagicMock()
        result.scalar_one_or_none.return_value = user
        session = AsyncMock(execute=AsyncMock(return_value=result))
        websocket = MagicMock()
        websocket.app.state.db_session_factory = MockSessionFactory(session)
        websocket.app.state.redis_client = AsyncMock(get=AsyncMock(return_value="1" if revoked else None))
        return websocket

    @pytest.mark.asyncio
    async def test_access_token_resolves_user(self, _settings: Settings) -> None:
        user = make_user()
        token = create_access_token({"sub": str(user.id)}, _settings)
        assert await authenticate_socket(self._socket(user), token) is user

    @pytest.mark.asyncio
    async def test_refresh_token_rejected(self, _settings: Settings) -> None:
        user = make_user()
        token = create_refresh_token({"sub": str(user.id)}, _settings)
        assert await authenticate_socket(self._socket(user), token) is None

    @pytest.mark.asyncio
    async def test_revoked_token_rejected(self, _settings: Settings) -> None:
        user = make_user()
        token = create_access_token({"sub": str(user.id)}, _settings)
        assert await authenticate_socket(self._socket(user, revoked=True), token) is None

    @pytest.mark.asyncio
    async def test_garbage_token_rejected(self) -> None:
        assert await authenticate_socket(self._socket(make_user()), "not-a-jwt") is None

    @pytest.mark.asyncio
    async def test_disabled_user_rejected(self, _settings: Settings) -> None:
        user = make_user()
        user.is_active = False
        token = create_access_token({"sub": str(user.id)}, _settings)
        assert await authenticate_socket(self._socket(user), token) is None
