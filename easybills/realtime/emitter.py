"""Realtime emitters for claim events.

The transition engine receives an emitter instead of reaching for a
process-wide socket handle. ``RedisRealtimeEmitter`` publishes to Redis
Pub/Sub, where the WebSocket route picks events up; ``NullRealtimeEmitter``
stands in when no Redis client is available.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Protocol, runtime_checkable

import redis.asyncio as aioredis

from easybills.core.errors import DependencyError
from easybills.core.redis import CHANNEL_REVIEWERS, publish_event, user_channel

logger = logging.getLogger(__name__)


@runtime_checkable
class RealtimeEmitter(Protocol):
    """Delivers events to live sessions."""

    async def emit_to_owner(self, owner_id: uuid.UUID | str, event: dict[str, Any]) -> None: ...

    async def broadcast(self, event: dict[str, Any]) -> None: ...


class NullRealtimeEmitter:
    """Emitter used when realtime transport is not initialized."""

    async def emit_to_owner(self, owner_id: uuid.UUID | str, event: dict[str, Any]) -> None:
        logger.debug("Realtime disabled; dropping %s for %s", event.get("type"), owner_id)

    async def broadcast(self, event: dict[str, Any]) -> None:
        logger.debug("Realtime disabled; dropping broadcast %s", event.get("type"))


class RedisRealtimeEmitter:
    """Publish claim events on Redis Pub/Sub channels."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    async def emit_to_owner(self, owner_id: uuid.UUID | str, event: dict[str, Any]) -> None:
        await self._publish(user_channel(owner_id), event)

    async def broadcast(self, event: dict[str, Any]) -> None:
        await self._publish(CHANNEL_REVIEWERS, event)

    async def _publish(self, channel: str, event: dict[str, Any]) -> None:
        try:
            receivers = await publish_event(self._client, channel, event)
        except (aioredis.RedisError, OSError) as exc:
            raise DependencyError(f"Realtime publish to {channel} failed: {exc}") from exc
        logger.debug("Published %s to %s (%d receivers)", event.get("type"), channel, receivers)


def create_realtime_emitter(client: aioredis.Redis | None) -> RealtimeEmitter:
    if client is None:
        return NullRealtimeEmitter()
    return RedisRealtimeEmitter(client)
