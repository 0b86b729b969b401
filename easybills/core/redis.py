"""Redis client and Pub/Sub channel names.

Redis backs two concerns: the JWT blacklist and the Pub/Sub channels
that carry realtime claim events to WebSocket connections.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

import redis.asyncio as aioredis

from easybills.core.config import Settings

logger = logging.getLogger(__name__)

CHANNEL_USER_PREFIX = "easybills:realtime:user:"
CHANNEL_REVIEWERS = "easybills:realtime:reviewers"


def user_channel(user_id: uuid.UUID | str) -> str:
    """Channel carrying events for a single claim owner."""
    return f"{CHANNEL_USER_PREFIX}{user_id}"


def create_redis_client(settings: Settings) -> aioredis.Redis:
    """Client with string responses, so Pub/Sub payloads arrive as ``str``."""
    client: aioredis.Redis = aioredis.from_url(settings.redis_url or "", decode_responses=True)
    return client


async def verify_redis_connectivity(client: aioredis.Redis) -> bool:
    """PING the server; False (logged) when it cannot be reached."""
    try:
        return bool(await client.ping())
    except (aioredis.RedisError, OSError) as exc:
        logger.error("Redis unreachable: %s", exc)
        return False


async def publish_event(client: aioredis.Redis, channel: str, data: dict[str, Any]) -> int:
    """JSON-encode ``data`` onto ``channel``; returns the subscriber count."""
    receivers: int = await client.publish(channel, json.dumps(data, default=str))
    return receivers
