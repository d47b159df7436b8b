from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (state, pipeline, routers, docs) so tests can
build isolated instances with their own store and rate limiter.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.api.routes import health_router, users_router
from app.core.config import settings
from app.core.logging import configure_logging
from app.core.openapi import TAGS_METADATA, apply_openapi_customizations
from app.core.pipeline import install_request_pipeline
from app.core.rate_limit import build_rate_limiter
from app.services.user_store import UserStore

logger = logging.getLogger(__name__)


def build_user_store() -> UserStore:
    """Create the store configured by settings (optionally seeded)."""
    options = {
        "enforce_unique_email_on_replace": settings.app.enforce_unique_email_on_replace,
    }
    if settings.app.seed_users:
        return UserStore.with_seed_data(**options)
    return UserStore(**options)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Log startup and release in-memory state on shutdown."""
    logger.info(
        "app.startup",
        extra={
            "users": app.state.user_store.count(),
            "rate_limit_scope": settings.app.rate_limit_scope,
        },
    )
    yield
    app.state.user_store.clear()
    app.state.rate_limiter.reset()
    logger.info("app.shutdown")


def create_app(
    *,
    user_store: UserStore | None = None,
    rate_limiter: AbstractRateLimiter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        user_store: Store to serve; built from settings when omitted.
        rate_limiter: Limiter for the rate-limit stage; built from settings
            when omitted.

    Returns:
        Configured FastAPI app with pipeline, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Users API",
        description=(
            "Minimal CRUD API over an in-memory collection of users. Mutating "
            "requests on /users require the x-api-key header and are rate "
            "limited per client; bodies are validated before reaching the store."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        openapi_tags=TAGS_METADATA,
        lifespan=lifespan,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    app.state.user_store = user_store if user_store is not None else build_user_store()
    app.state.rate_limiter = rate_limiter if rate_limiter is not None else build_rate_limiter()

    install_request_pipeline(app)

    app.include_router(health_router)
    app.include_router(users_router)

    apply_openapi_customizations(app)

    return app
