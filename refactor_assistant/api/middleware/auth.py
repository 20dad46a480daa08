"""Optional API-key auth middleware.

When ``server.api_key`` is configured, every ``/api/`` request must carry
the same value in ``X-API-Key``. Health and docs routes stay public.
"""

from __future__ import annotations

import hmac
import logging
from typing import Awaitable, Callable

from fastapi import Request
from fastapi.responses import JSONResponse, Response

logger = logging.getLogger(__name__)

_PUBLIC_PATH_PREFIXES = (
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
)

CallNext = Callable[[Request], Awaitable[Response]]


def should_authenticate(path: str) -> bool:
    """Return True when this path should be protected by API-key auth."""
    if path.startswith(_PUBLIC_PATH_PREFIXES):
        return False
    return path.startswith("/api/")


def api_key_middleware(
    expected_key: str | None,
) -> Callable[[Request, CallNext], Awaitable[Response]]:
    """Build the middleware for a configured key.

    Args:
        expected_key: Shared secret. Empty or None disables auth.

    Returns:
        Coroutine suitable for ``app.middleware("http")``.
    """
    key = (expected_key or "").strip()

    async def maybe_require_api_key(request: Request, call_next: CallNext) -> Response:
        if not key or request.method.upper() == "OPTIONS":
            return await call_next(request)
        if not should_authenticate(request.url.path):
            return await call_next(request)

        provided_key = request.headers.get("X-API-Key", "")
        if not provided_key or not hmac.compare_digest(provided_key, key):
            client_host = request.client.host if request.client else "unknown"
            logger.warning("Rejected request from %s: invalid API key", client_host)
            return JSONResponse(
                status_code=401,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)

    return maybe_require_api_key
