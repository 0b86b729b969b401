"""EasyBills FastAPI application entry point.

Configures the FastAPI app with:
- Lifespan events for database, Redis and the claim side-effect services
- CORS, security, request-ID and rate-limit middleware
- Route registration
- A single handler that maps ``EasyBillsError`` to its HTTP status
- Uploaded receipts served under /files
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
import logging
from urllib.parse import urlparse

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from easybills.api.middleware import RateLimitMiddleware, RequestIDMiddleware, SecurityHeadersMiddleware
from easybills.api.routes import auth as auth_routes
from easybills.api.routes import claims, health, users, websocket
from easybills.api.routes.auth import limiter
from easybills.api.version import API_VERSION
from easybills.claims.notifier import ClaimNotifier
from easybills.core.config import configure_logging, get_settings
from easybills.core.database import create_engine
from easybills.core.errors import EasyBillsError
from easybills.core.redis import create_redis_client, verify_redis_connectivity
from easybills.notifications.dispatcher import NotificationDispatcher
from easybills.notifications.email import create_email_sender
from easybills.realtime.emitter import create_realtime_emitter
from easybills.storage.backend import LocalFilesystemBackend

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open connections and build the side-effect services; close on shutdown."""
    settings = get_settings()

    # -- PostgreSQL ---
    engine, session_factory = create_engine(settings)
    app.state.db_engine = engine
    app.state.db_session_factory = session_factory
    logger.info("PostgreSQL connection pool initialized")

    # -- Redis ---
    redis_client = create_redis_client(settings)
    app.state.redis_client = redis_client
    if await verify_redis_connectivity(redis_client):
        logger.info("Redis connection verified")
    else:
        logger.warning("Redis is not reachable; realtime updates and logout will fail until it is")

    # -- Claim side effects ---
    dispatcher = NotificationDispatcher(create_email_sender(settings), portal_url=settings.portal_url)
    app.state.claim_notifier = ClaimNotifier(dispatcher, create_realtime_emitter(redis_client))
    app.state.storage = LocalFilesystemBackend.from_settings(settings)

    yield

    # -- Shutdown ---
    await redis_client.close()
    await engine.dispose()
    logger.info("All connections closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Expense claim submission and approval portal",
        version=API_VERSION,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # -- Rate Limiter (slowapi) ---
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Middleware runs in reverse order of registration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID", "Accept"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(SlowAPIMiddleware)

    # -- Routes ---
    app.include_router(health.router)
    app.include_router(auth_routes.router)
    app.include_router(users.router)
    app.include_router(claims.router)
    app.include_router(websocket.router)

    # -- Receipt files ---
    files_path = urlparse(settings.storage_public_base_url).path or "/files"
    app.mount(files_path, StaticFiles(directory=settings.storage_root, check_dir=False), name="files")

    # -- Error Handlers ---
    @app.exception_handler(EasyBillsError)
    async def easybills_error_handler(request: Request, exc: EasyBillsError) -> JSONResponse:
        request_id = getattr(request.state, "request_id", "unknown")
        if exc.status_code >= 500:
            logger.error("%s [%s]: %s", type(exc).__name__, request_id, exc.message)
        else:
            logger.warning("%s [%s]: %s", type(exc).__name__, request_id, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "request_id": request_id},
        )

    @app.exception_handler(Exception)  # Intentionally broad: top-level global error handler
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = getattr(request.state, "request_id", "unknown")
        logger.exception("Unhandled error [%s]: %s", request_id, exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "request_id": request_id},
        )

    return app


# Application instance used by uvicorn
app = create_app()
