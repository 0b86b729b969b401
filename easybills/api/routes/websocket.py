"""Live claim updates over WebSocket.

A socket listens on its user's Redis channel, and Accounts users also
listen on the reviewers channel. Whatever the realtime emitter publishes
there is relayed to the browser unchanged.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect

from easybills.core.auth import decode_token, is_token_blacklisted, load_active_user, subject_id
from easybills.core.config import Settings, get_settings
from easybills.core.models import User, UserRole
from easybills.core.redis import CHANNEL_REVIEWERS, user_channel

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])

POLICY_VIOLATION = 1008


class ConnectionManager:
    """Open sockets, keyed by user id."""

    def __init__(self) -> None:
        self._sockets: dict[str, list[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: str) -> None:
        await websocket.accept()
        self._sockets.setdefault(user_id, []).append(websocket)
        logger.info("WebSocket opened for user %s (%d open)", user_id, len(self._sockets[user_id]))

    def disconnect(self, websocket: WebSocket, user_id: str) -> None:
        sockets = self._sockets.get(user_id)
        if sockets is None:
            return
        sockets[:] = [ws for ws in sockets if ws is not websocket]
        if not sockets:
            del self._sockets[user_id]
        logger.info("WebSocket closed for user %s", user_id)

    @property
    def active_connections(self) -> int:
        return sum(map(len, self._sockets.values()))

    def get_user_ids(self) -> list[str]:
        return sorted(self._sockets)

    def get_connection_count(self, user_id: str) -> int:
        return len(self._sockets.get(user_id, ()))


manager = ConnectionManager()


def channels_for(user: User) -> list[str]:
    """Pub/Sub channels a user's socket listens on."""
    channels = [user_channel(user.id)]
    if user.role == UserRole.ACCOUNTS:
        channels.append(CHANNEL_REVIEWERS)
    return channels


async def authenticate_socket(websocket: WebSocket, token: str) -> User | None:
    """Active user behind an unrevoked access token, else None."""
    try:
        payload = decode_token(token, get_settings())
        if payload.get("type") != "access":
            return None
        user_id = subject_id(payload)
    except HTTPException as exc:
        logger.warning("WebSocket authentication failed: %s", exc.detail)
        return None
    if await is_token_blacklisted(websocket, token):
        return None
    return await load_active_user(websocket.app.state.db_session_factory, user_id)


async def _relay(websocket: WebSocket, channels: list[str]) -> None:
    """Forward Pub/Sub messages to the socket until cancelled."""
    pubsub = websocket.app.state.redis_client.pubsub()
    await pubsub.subscribe(*channels)
    try:
        while True:
            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            if message is None or message["type"] != "message":
                await asyncio.sleep(0.1)
                continue
            try:
                event = json.loads(message["data"])
            except (json.JSONDecodeError, TypeError):
                logger.debug("Dropped malformed realtime message on %s", message.get("channel"))
                continue
            await websocket.send_json(event)
    finally:
        await pubsub.unsubscribe(*channels)
        await pubsub.close()


async def _converse(websocket: WebSocket, settings: Settings) -> None:
    """Answer ``ping`` and send a heartbeat whenever the client goes quiet."""
    while True:
        try:
            text = await asyncio.wait_for(websocket.receive_text(), timeout=settings.ws_heartbeat_interval)
        except TimeoutError:
            await websocket.send_json({"type": "heartbeat"})
            continue
        if text == "ping":
            await websocket.send_text("pong")


@router.websocket("/ws/claims")
async def claims_websocket(
    websocket: WebSocket,
    token: str | None = Query(default=None),
) -> None:
    """Push ``claimStatusUpdated`` and ``claimUpdated`` events to the caller.

    The access token travels as ``?token=``. Bad tokens and sockets over
    ``ws_max_connections_per_user`` are closed with 1008.
    """
    if not token:
        await websocket.close(code=POLICY_VIOLATION, reason="Missing authentication token")
        return

    user = await authenticate_socket(websocket, token)
    if user is None:
        await websocket.close(code=POLICY_VIOLATION, reason="Invalid or expired token")
        return

    settings = get_settings()
    user_id = str(user.id)
    limit = settings.ws_max_connections_per_user
    if manager.get_connection_count(user_id) >= limit:
        logger.warning("User %s already has %d sockets open", user_id, limit)
        await websocket.close(code=POLICY_VIOLATION, reason=f"Connection limit reached ({limit} max)")
        return

    await manager.connect(websocket, user_id)
    relay = asyncio.create_task(_relay(websocket, channels_for(user)))
    try:
        await _converse(websocket, settings)
    except WebSocketDisconnect:
        pass
    finally:
        relay.cancel()
        manager.disconnect(websocket, user_id)


@router.get("/api/v1/ws/status")
async def websocket_status() -> dict[str, Any]:
    return {
        "active_connections": manager.active_connections,
        "user_ids": manager.get_user_ids(),
    }
