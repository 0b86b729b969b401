"""Sign-in, token refresh and logout under ``/api/v1/auth``.

In dev mode ``POST /token`` signs a user in by email alone. Unknown
emails become Faculty accounts, subject to ``allowed_email_domain``.
``/refresh`` trades a refresh token for a new pair and ``/logout``
revokes the presented access token.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from easybills.api.deps import get_session
from easybills.api.schemas.claims import MessageResponse, RefreshRequest, TokenRequest, TokenResponse
from easybills.core.auth import (
    bearer_scheme,
    blacklist_token,
    create_access_token,
    create_refresh_token,
    decode_token,
    subject_id,
    token_ttl_seconds,
)
from easybills.core.config import Settings, get_settings
from easybills.core.models import User, UserRole

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])
limiter = Limiter(key_func=get_remote_address, default_limits=["100/minute"])


def email_domain_allowed(email: str, allowed_domain: str) -> bool:
    if not allowed_domain:
        return True
    return email.rsplit("@", 1)[-1].lower() == allowed_domain.lower()


def _token_pair(user: User, settings: Settings) -> dict[str, Any]:
    claims = {"sub": str(user.id), "email": user.email, "name": user.name, "role": user.role.value}
    return {
        "access_token": create_access_token(claims, settings),
        "refresh_token": create_refresh_token(claims, settings),
        "token_type": "bearer",
    }


async def _find_or_create_user(session: AsyncSession, email: str, name: str | None) -> User:
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is not None:
        return user

    user = User(email=email, name=name, role=UserRole.FACULTY, is_active=True)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    logger.info("Created Faculty user %s on first sign-in", email)
    return user


@router.post("/token", response_model=TokenResponse)
@limiter.limit("5/minute")
async def get_token(
    request: Request,
    payload: TokenRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    if not settings.auth_dev_mode:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Dev-mode token endpoint is disabled")
    if not email_domain_allowed(payload.email, settings.allowed_email_domain):
        logger.warning("Sign-in rejected for %s: unauthorized domain", payload.email)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized domain")

    user = await _find_or_create_user(session, payload.email, payload.name)
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User account is disabled")
    return _token_pair(user, settings)


@router.post("/refresh", response_model=TokenResponse)
@limiter.limit("10/minute")
async def refresh_token(
    request: Request,
    payload: RefreshRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Exchange a refresh token for a fresh pair."""
    decoded = decode_token(payload.refresh_token, settings)
    if decoded.get("type") != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type: expected refresh token",
        )

    result = await session.execute(select(User).where(User.id == subject_id(decoded)))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or disabled",
        )
    return _token_pair(user, settings)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> dict[str, str]:
    """Revoke the caller's access token until it would have expired anyway."""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    token = credentials.credentials
    ttl = token_ttl_seconds(decode_token(token, settings))
    await blacklist_token(request, token, expires_in=ttl)
    logger.info("Token revoked for %ss", ttl)
    return {"message": "Logged out"}
