"""Unit tests for in-memory sliding-window rate limiter adapter."""

import threading
from unittest.mock import Mock

import pytest

from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter


def test_allows_up_to_limit_then_blocks() -> None:
    limiter = InMemorySlidingWindowRateLimiter(limit=10, window_seconds=60)

    assert all(limiter.allow("client", t * 1000) for t in range(10))
    assert limiter.allow("client", 10_000) is False


def test_window_boundary_is_exclusive_of_older_than_window() -> None:
    limiter = InMemorySlidingWindowRateLimiter(limit=1, window_seconds=60)

    assert limiter.allow("client", 0) is True
    # Exactly 60s later the first request is not yet older than the window
    assert limiter.allow("client", 60_000) is False
    assert limiter.allow("client", 60_001) is True


def test_blocked_requests_are_not_recorded() -> None:
    limiter = InMemorySlidingWindowRateLimiter(limit=10, window_seconds=60)
    for t in range(10):
        assert limiter.allow("client", t * 1000)

    assert limiter.allow("client", 10_000) is False

    # Only the request at t=0 has aged out, freeing exactly one slot
    assert limiter.allow("client", 60_001) is True
    assert limiter.allow("client", 60_002) is False


def test_isolated_by_client() -> None:
    limiter = InMemorySlidingWindowRateLimiter(limit=1, window_seconds=60)

    assert limiter.allow("k1", 0) is True
    assert limiter.allow("k1", 1) is False
    assert limiter.allow("k2", 1) is True


def test_consume_uses_clock_and_reports_metadata() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemorySlidingWindowRateLimiter(limit=2, window_seconds=60, clock=clock)

    first = limiter.consume("k")
    assert first.allowed is True
    assert first.remaining == 1
    assert first.reset_at == 1060

    assert limiter.consume("k").remaining == 0

    blocked = limiter.consume("k")
    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.retry_after_seconds == 60

    clock.return_value = 1030.0
    assert limiter.consume("k").retry_after_seconds == 30

    clock.return_value = 1061.0
    assert limiter.consume("k").allowed is True


def test_reset_forgets_all_clients() -> None:
    limiter = InMemorySlidingWindowRateLimiter(limit=1, window_seconds=60)
    limiter.allow("k", 0)

    limiter.reset()

    assert limiter.allow("k", 1) is True


def test_idle_clients_are_forgotten() -> None:
    limiter = InMemorySlidingWindowRateLimiter(limit=2, window_seconds=60)
    for idx in range(5):
        limiter.allow(f"ip:10.0.0.{idx}", 0)

    assert limiter.tracked_clients == 5

    limiter.allow("ip:10.0.0.9", 120_001)

    assert limiter.tracked_clients == 1


def test_forgetting_a_client_keeps_its_live_budget() -> None:
    limiter = InMemorySlidingWindowRateLimiter(limit=2, window_seconds=60)
    limiter.allow("busy", 0)
    limiter.allow("busy", 50_000)
    limiter.allow("idle", 0)

    # Sweep at 60_001 drops "idle" only; "busy" still has a request in the window
    limiter.allow("other", 60_001)

    assert limiter.tracked_clients == 2
    assert limiter.allow("busy", 60_002) is True
    assert limiter.allow("busy", 60_003) is False


def test_concurrent_requests_never_exceed_limit() -> None:
    limiter = InMemorySlidingWindowRateLimiter(limit=10, window_seconds=60)
    results: list[bool] = []
    results_lock = threading.Lock()

    def _hit() -> None:
        allowed = limiter.allow("shared", 5_000)
        with results_lock:
            results.append(allowed)

    threads = [threading.Thread(target=_hit) for _ in range(50)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 10


@pytest.mark.parametrize(
    "kwargs",
    [
        {"limit": 0, "window_seconds": 60},
        {"limit": 1, "window_seconds": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        InMemorySlidingWindowRateLimiter(**kwargs)


def test_empty_client_id_is_rejected() -> None:
    limiter = InMemorySlidingWindowRateLimiter(limit=1, window_seconds=60)

    with pytest.raises(ValueError):
        limiter.allow("", 0)

    with pytest.raises(ValueError):
        limiter.consume("")
