"""In-memory sliding-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: each client's window has its own lock, so different clients
  never contend with each other.
- Clients idle for a whole window are swept at most once per window, so
  memory tracks recently active clients only.
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


@dataclass
class _ClientWindow:
    timestamps: deque[int] = field(default_factory=deque)
    lock: threading.Lock = field(default_factory=threading.Lock)
    retired: bool = False


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests in a trailing window per client.

    Every accepted request stores its timestamp. On each check, timestamps
    older than the window are evicted; when the remaining count has reached the
    limit the request is rejected and its timestamp is not recorded, so a
    blocked client regains budget as soon as its oldest request ages out.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        limit: int = 10,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of requests per window.
            window_seconds: Size of the sliding window in seconds.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._limit = limit
        self._window_ms = window_seconds * 1000
        self._clock = clock
        self._registry_lock = threading.Lock()
        self._windows: dict[str, _ClientWindow] = {}
        self._next_sweep_ms = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_ms // 1000

    @property
    def tracked_clients(self) -> int:
        with self._registry_lock:
            return len(self._windows)

    def _window_for(self, client_id: str) -> _ClientWindow:
        with self._registry_lock:
            window = self._windows.get(client_id)
            if window is None:
                window = _ClientWindow()
                self._windows[client_id] = window
            return window

    def _evict_expired(self, window: _ClientWindow, now_millis: int) -> None:
        cutoff = now_millis - self._window_ms
        while window.timestamps and window.timestamps[0] < cutoff:
            window.timestamps.popleft()

    def _sweep_idle(self, now_millis: int) -> None:
        """Forget clients whose newest request is older than the window."""
        cutoff = now_millis - self._window_ms
        with self._registry_lock:
            if now_millis < self._next_sweep_ms:
                return
            self._next_sweep_ms = now_millis + self._window_ms

            for client_id, window in list(self._windows.items()):
                # A busy window is in use right now, so it is not idle
                if not window.lock.acquire(blocking=False):
                    continue
                try:
                    if not window.timestamps or window.timestamps[-1] < cutoff:
                        window.retired = True
                        del self._windows[client_id]
                finally:
                    window.lock.release()

    def _check_and_record(self, client_id: str, now_millis: int) -> RateLimitResult:
        if not client_id:
            raise ValueError("client_id must be a non-empty string")

        self._sweep_idle(now_millis)

        while True:
            window = self._window_for(client_id)
            with window.lock:
                # Swept between lookup and lock; the registry holds a fresh one
                if not window.retired:
                    return self._record(window, now_millis)

    def _record(self, window: _ClientWindow, now_millis: int) -> RateLimitResult:
        self._evict_expired(window, now_millis)

        if len(window.timestamps) >= self._limit:
            oldest = window.timestamps[0]
            reset_ms = oldest + self._window_ms
            return RateLimitResult(
                allowed=False,
                limit=self._limit,
                remaining=0,
                reset_at=int(math.ceil(reset_ms / 1000)),
                retry_after_seconds=max(1, int(math.ceil((reset_ms - now_millis) / 1000))),
            )

        window.timestamps.append(now_millis)
        oldest = window.timestamps[0]
        return RateLimitResult(
            allowed=True,
            limit=self._limit,
            remaining=self._limit - len(window.timestamps),
            reset_at=int(math.ceil((oldest + self._window_ms) / 1000)),
            retry_after_seconds=None,
        )

    def allow(self, client_id: str, now_millis: int) -> bool:
        """Record a request for ``client_id`` at ``now_millis`` if within budget.

        Args:
            client_id: Unique identifier for rate limiting (e.g., client IP).
            now_millis: Current time in milliseconds.

        Returns:
            True if the request was counted, False if the client is over limit.

        Raises:
            ValueError: If client_id is empty.
        """
        return self._check_and_record(client_id, now_millis).allowed

    def consume(self, key: str) -> RateLimitResult:
        """Check and record a request for ``key`` at the current clock time.

        Args:
            key: Unique identifier for rate limiting (e.g., client IP).

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty.
        """
        now_millis = int(self._clock() * 1000)
        return self._check_and_record(key, now_millis)

    def reset(self) -> None:
        with self._registry_lock:
            self._windows.clear()
