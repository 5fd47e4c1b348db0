"""Rate limiter interfaces.

The ask pipeline depends on this abstraction (not the concrete implementation)
so the per-process table can later be replaced by a shared store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the client's current window expires.
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
    def consume(self, key: str) -> RateLimitResult:
        """Record one request for ``key`` and decide whether it may proceed.

        Args:
            key: Client identifier (e.g., forwarded client address).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    def check_and_record(self, key: str) -> bool:
        """Boolean shorthand for ``consume(key).allowed``."""
        return self.consume(key).allowed
