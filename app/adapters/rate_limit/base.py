"""Rate limiter interfaces.

The pipeline depends on this abstraction (not the concrete implementation)
so the storage backend can be swapped later with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check/consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the oldest counted request leaves the window.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def allow(self, client_id: str, now_millis: int) -> bool:
        """Record a request at ``now_millis`` if the client still has budget.

        Args:
            client_id: Unique identifier (e.g., client IP address).
            now_millis: Current time in milliseconds.

        Returns:
            True when the request fits in the window, False otherwise.
        """
        raise NotImplementedError

    @abstractmethod
    def consume(self, key: str) -> RateLimitResult:
        """Consume one unit of budget for a key using the limiter's own clock.

        Args:
            key: Unique identifier (e.g., client IP address).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def reset(self) -> None:
        """Forget every tracked client."""
        raise NotImplementedError
