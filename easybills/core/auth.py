"""Bearer-token authentication for the portal.

Access and refresh tokens are HS256 JWTs signed with the first configured
key and verified against every key in ``jwt_verification_keys``, so a
secret can be rotated without logging everyone out. Logout revokes an
access token by writing it to Redis until it would expire.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
import logging
from typing import Any
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.requests import HTTPConnection
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from jwt import PyJWTError
import redis.asyncio as aioredis
from sqlalchemy import select

from easybills.core.config import Settings, get_settings
from easybills.core.errors import DependencyError
from easybills.core.models import User

logger = logging.getLogger(__name__)

# auto_error off: missing credentials get our own 401 detail
bearer_scheme = HTTPBearer(auto_error=False)

BLACKLIST_PREFIX = "token:blacklist:"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# ---------------------------------------------------------------------------
# Issuing and verifying tokens
# ---------------------------------------------------------------------------


def _encode(claims: dict[str, Any], token_type: str, lifetime: timedelta, settings: Settings) -> str:
    body = {**claims, "exp": datetime.now(UTC) + lifetime, "type": token_type}
    return jwt.encode(body, settings.jwt_verification_keys[0], algorithm=settings.jwt_algorithm)


def create_access_token(
    data: dict[str, Any],
    settings: Settings | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Sign a short-lived ``access`` token carrying ``data`` (``sub`` = user id).

    ``expires_delta`` overrides ``jwt_access_token_expire_minutes``.
    """
    settings = settings or get_settings()
    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    return _encode(data, "access", lifetime, settings)


def create_refresh_token(
    data: dict[str, Any],
    settings: Settings | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    settings = settings or get_settings()
    lifetime = expires_delta or timedelta(minutes=settings.jwt_refresh_token_expire_minutes)
    return _encode(data, "refresh", lifetime, settings)


def decode_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    """Verify ``token`` against each rotation key and return its claims.

    Raises:
        HTTPException 401: Bad signature, malformed or expired.
    """
    settings = settings or get_settings()
    failure: PyJWTError | None = None
    for key in settings.jwt_verification_keys:
        try:
            return jwt.decode(token, key, algorithms=[settings.jwt_algorithm])
        except PyJWTError as exc:
            failure = exc
    raise _unauthorized("Invalid or expired token") from failure


def token_ttl_seconds(payload: dict[str, Any]) -> int:
    """Seconds left before a decoded token expires (at least 1)."""
    exp = payload.get("exp")
    if exp is None:
        return 1
    return max(int(exp - datetime.now(UTC).timestamp()), 1)


# ---------------------------------------------------------------------------
# Revocation (Redis-backed)
# ---------------------------------------------------------------------------


async def is_token_blacklisted(conn: HTTPConnection, token: str) -> bool:
    """Whether ``token`` was revoked by logout.

    An unreachable Redis counts as revoked.
    """
    try:
        return await conn.app.state.redis_client.get(f"{BLACKLIST_PREFIX}{token}") is not None
    except (aioredis.RedisError, OSError) as exc:
        logger.warning("Token blacklist unavailable, rejecting token: %s", exc)
        return True


async def blacklist_token(request: Request, token: str, expires_in: int = 1800) -> None:
    """Revoke ``token`` for the rest of its lifetime.

    Raises:
        DependencyError: If Redis cannot record the revocation.
    """
    try:
        await request.app.state.redis_client.setex(f"{BLACKLIST_PREFIX}{token}", expires_in, "1")
    except (aioredis.RedisError, OSError) as exc:
        raise DependencyError(f"Could not revoke token: {exc}") from exc


# ---------------------------------------------------------------------------
# Current user
# ---------------------------------------------------------------------------


def subject_id(payload: dict[str, Any]) -> UUID:
    """User id carried in the ``sub`` claim.

    Raises:
        HTTPException 401: If the claim is missing or not a UUID.
    """
    subject = payload.get("sub")
    if not subject:
        raise _unauthorized("Token missing subject claim")
    try:
        return UUID(subject)
    except ValueError as exc:
        raise _unauthorized("Invalid user ID in token") from exc


async def load_active_user(session_factory: Any, user_id: UUID) -> User | None:
    """Fetch a user in a short-lived session; None if missing or disabled."""
    async with session_factory() as session:
        result = await session.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> User:
    """Resolve the bearer access token to an active user.

    Raises:
        HTTPException 401: Missing, invalid, refresh-type or revoked token,
            or an unknown or disabled user.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    token = credentials.credentials
    payload = decode_token(token, settings)
    if payload.get("type") != "access":
        raise _unauthorized("Access token required")
    if await is_token_blacklisted(request, token):
        raise _unauthorized("Token has been revoked")

    user_id = subject_id(payload)
    async with request.app.state.db_session_factory() as session:
        result = await session.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()

    if user is None:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("User account is disabled")
    return user
