"""Rate limiting stage of the request pipeline.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: the stage talks to the limiter through an abstract
  interface stored on ``app.state``.
- Explicit scope: ``APP_RATE_LIMIT_SCOPE=mutating`` (default) limits mutating
  requests under the protected prefix; ``all`` limits every request.
- Clients are keyed by their network address.
"""

from __future__ import annotations

import logging

from fastapi import Request, Response

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from app.core.auth import is_mutating, is_protected_path
from app.core.config import settings
from app.core.errors import RateLimitAppError
from app.core.exception_handlers import app_error_response
from app.core.logging import fingerprint

logger = logging.getLogger(__name__)


def build_rate_limiter() -> AbstractRateLimiter:
    """Create the limiter configured by settings."""

    return InMemorySlidingWindowRateLimiter(
        limit=settings.app.rate_limit_requests,
        window_seconds=settings.app.rate_limit_window_seconds,
    )


def is_rate_limited_request(method: str, path: str, scope: str | None = None) -> bool:
    """Decide whether a request counts against the client's budget.

    Args:
        method: HTTP method.
        path: Request path.
        scope: "mutating" or "all"; defaults to the configured scope.
    """

    scope = scope or settings.app.rate_limit_scope
    if scope == "all":
        return True
    return is_mutating(method) and is_protected_path(path)


def client_key(request: Request) -> str:
    """Build the limiter key for the current request from the client address."""

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """Consume one unit of budget for in-scope requests; answer 429 when exhausted."""

    if not settings.app.rate_limit_enabled or not is_rate_limited_request(
        request.method, request.url.path
    ):
        return await call_next(request)

    limiter: AbstractRateLimiter = request.app.state.rate_limiter
    key = client_key(request)
    result = limiter.consume(key)

    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_hash": fingerprint(key),
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return await call_next(request)

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": fingerprint(key),
            "limit": result.limit,
            "retry_after_s": retry_after,
        },
    )

    headers: dict[str, str] = {}
    if settings.app.rate_limit_include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(result.limit)
        headers["X-RateLimit-Remaining"] = str(result.remaining)
        headers["X-RateLimit-Reset"] = str(result.reset_at)

    return app_error_response(
        RateLimitAppError(
            code="rate_limited",
            message="Too many requests. Try again later.",
            details={"limit": result.limit, "retry_after": retry_after},
            headers=headers,
        )
    )
