"""Request-level middleware.

- ``RequestIDMiddleware`` tags each request with an X-Request-ID that
  error responses echo back
- ``SecurityHeadersMiddleware`` adds browser hardening headers
- ``RateLimitMiddleware`` throttles clients per IP (in-memory)
"""

from __future__ import annotations

import logging
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from easybills.api.version import API_VERSION
from easybills.core.config import get_settings

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse the client's X-Request-ID or mint a new UUID4."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers and the API version to every response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        response.headers["X-API-Version"] = API_VERSION
        if not get_settings().debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


@dataclass
class _Window:
    count: int = 0
    started: float = 0.0


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window request limit per client IP.

    State is per process, so with N workers a client can make up to
    ``N * max_requests`` requests per window.
    """

    # Sweep expired windows every this many requests
    prune_every = 1000

    def __init__(self, app: ASGIApp, max_requests: int = 100, window_seconds: int = 60) -> None:
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._windows: dict[str, _Window] = defaultdict(_Window)
        self._seen = 0

    def _prune(self, now: float) -> None:
        expired = [ip for ip, w in self._windows.items() if now - w.started >= self.window_seconds]
        for ip in expired:
            del self._windows[ip]

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        # X-Forwarded-For is spoofable; only the ASGI peer address counts
        client_ip = request.client.host if request.client else "unknown"
        now = time.monotonic()

        self._seen += 1
        if self._seen >= self.prune_every:
            self._prune(now)
            self._seen = 0

        window = self._windows[client_ip]
        if now - window.started >= self.window_seconds:
            window.count = 0
            window.started = now
        window.count += 1

        if window.count > self.max_requests:
            retry_after = max(int(self.window_seconds - (now - window.started)), 1)
            logger.warning("Rate limit exceeded for %s", client_ip)
            return Response(
                content='{"detail":"Rate limit exceeded"}',
                status_code=429,
                media_type="application/json",
                headers={"Retry-After": str(retry_after)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.max_requests - window.count))
        return response
