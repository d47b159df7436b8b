"""Request pipeline composition.

Every request passes through these stages in order; any stage may answer
early, skipping the rest:

1. request logging      - correlation id, access log (never blocks)
2. error boundary       - unhandled faults from later stages become 500
3. access gate          - 401 for mutating /users* requests without a key
4. rate limiter         - 429 once the client's window is full
5. validation           - route dependencies, 400 with field errors
6. route handler        - user store operations
7. not-found fallback   - 404 for unmatched method + path

Stages 1-4 are HTTP middlewares. Starlette runs the most recently added
middleware outermost, so they are registered innermost first.
"""

from __future__ import annotations

from fastapi import FastAPI

from app.core.auth import access_gate_middleware
from app.core.exception_handlers import setup_exception_handlers
from app.core.middleware import error_boundary_middleware, request_logging_middleware
from app.core.rate_limit import rate_limit_middleware

# Outermost first
MIDDLEWARE_STAGES = (
    request_logging_middleware,
    error_boundary_middleware,
    access_gate_middleware,
    rate_limit_middleware,
)


def install_request_pipeline(app: FastAPI) -> None:
    """Register pipeline middlewares and the error/not-found handlers on ``app``."""

    for stage in reversed(MIDDLEWARE_STAGES):
        app.middleware("http")(stage)

    setup_exception_handlers(app)
