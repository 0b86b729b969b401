"""Tests for the Redis helpers (easybills/core/redis.py)."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest
import redis.asyncio as aioredis

from easybills.core.redis import publish_event, user_channel, verify_redis_connectivity


def test_user_channel() -> None:
    assert user_channel("abc") == "easybills:realtime:user:abc"


@pytest.mark.asyncio
async def test_publish_event_encodes_json(mock_redis_client: AsyncMock) -> None:
    receivers = await publish_event(mock_redis_client, "chan", {"type": "claimUpdated", "amount": 5})
    assert receivers == 1
    channel, payload = mock_redis_client.publish.await_args.args
    assert channel == "chan"
    assert json.loads(payload) == {"type": "claimUpdated", "amount": 5}


@pytest.mark.asyncio
async def test_verify_connectivity(mock_redis_client: AsyncMock) -> None:
    assert await verify_redis_connectivity(mock_redis_client) is True
    mock_redis_client.ping.side_effect = aioredis.ConnectionError("refused")
    assert await verify_redis_connectivity(mock_redis_client) is False
