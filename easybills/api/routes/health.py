"""Health check endpoint.

``GET /api/v1/health`` probes PostgreSQL and Redis. The portal is
``healthy`` when both answer, ``degraded`` when one does and
``unhealthy`` when neither does.
"""

from __future__ import annotations

from datetime import UTC, datetime
import logging
from typing import Any

from fastapi import APIRouter, Request
import redis.asyncio as aioredis
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from easybills.api.version import API_VERSION

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)

UP = "up"
DOWN = "down"


async def _postgres_status(request: Request) -> str:
    try:
        async with request.app.state.db_session_factory() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("PostgreSQL health probe failed: %s", exc)
        return DOWN
    return UP


async def _redis_status(request: Request) -> str:
    try:
        await request.app.state.redis_client.ping()
    except (aioredis.RedisError, OSError) as exc:
        logger.warning("Redis health probe failed: %s", exc)
        return DOWN
    return UP


def overall_status(services: dict[str, str]) -> str:
    down = list(services.values()).count(DOWN)
    if down == 0:
        return "healthy"
    return "unhealthy" if down == len(services) else "degraded"


@router.get("/api/v1/health")
async def health_check(request: Request) -> dict[str, Any]:
    """Report per-service and overall health."""
    services = {
        "postgres": await _postgres_status(request),
        "redis": await _redis_status(request),
    }
    return {
        "status": overall_status(services),
        "services": services,
        "version": API_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
    }
