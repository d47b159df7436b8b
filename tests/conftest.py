"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It selects the testing environment before any app module reads settings and
provides fixtures that build an isolated app (own store, own limiter with a
controllable clock) for every test.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LOG_LEVEL", "INFO")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from app.core.app_factory import create_app
from app.services.user_store import UserStore

VALID_API_KEY = "secret-key-123"


class FakeClock:
    """Deterministic clock used to drive the sliding window."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def time(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> UserStore:
    """Store seeded with Anna (1), Erik (2) and Maria (3)."""
    return UserStore.with_seed_data()


@pytest.fixture
def limiter(clock: FakeClock) -> InMemorySlidingWindowRateLimiter:
    return InMemorySlidingWindowRateLimiter(limit=10, window_seconds=60, clock=clock.time)


@pytest.fixture
def app(store: UserStore, limiter: InMemorySlidingWindowRateLimiter) -> FastAPI:
    return create_app(user_store=store, rate_limiter=limiter)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def api_headers() -> dict[str, str]:
    """Headers accepted by the access gate."""
    return {"x-api-key": VALID_API_KEY}
