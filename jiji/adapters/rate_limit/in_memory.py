"""In-memory per-client window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state, so concurrent requests for
  the same key never lose increments.
- Windows start at each client's first request rather than on clock-aligned
  boundaries. A burst straddling the end of one window and the start of the
  next can therefore admit up to twice the limit.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from jiji.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult

logger = logging.getLogger(__name__)


@dataclass
class _WindowState:
    window_start: float
    count: int


class AbstractSweepStrategy(ABC):
    """Decides when the limiter should purge expired client windows."""

    @abstractmethod
    def should_sweep(self, now: float) -> bool:
        raise NotImplementedError


class NoSweep(AbstractSweepStrategy):
    """Never purge automatically; the table grows with distinct clients."""

    def should_sweep(self, now: float) -> bool:
        return False


class PeriodicSweep(AbstractSweepStrategy):
    """Purge at most once per ``interval_seconds``."""

    def __init__(self, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._interval = interval_seconds
        self._last_sweep: float | None = None

    def should_sweep(self, now: float) -> bool:
        if self._last_sweep is None:
            self._last_sweep = now
            return False
        if now - self._last_sweep >= self._interval:
            self._last_sweep = now
            return True
        return False


class InMemoryWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter keeping one counting window per client key.

    A window opens at the client's first request. Once its age exceeds
    ``window_seconds`` the next request replaces it with a fresh window.
    Requests that are denied still count toward the window.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        sweep_strategy: AbstractSweepStrategy | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of allowed requests per window.
            window_seconds: Window length in seconds.
            sweep_strategy: When to purge expired windows (default: never).
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._limit = limit
        self._window_seconds = window_seconds
        self._sweep_strategy = sweep_strategy or NoSweep()
        self._clock = clock
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _WindowState] = {}

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def __len__(self) -> int:
        with self._lock:
            return len(self._state_by_key)

    def _is_expired(self, state: _WindowState, now: float) -> bool:
        return now - state.window_start > self._window_seconds

    def consume(self, key: str) -> RateLimitResult:
        """Record one request for ``key``.

        Args:
            key: Unique identifier for rate limiting (e.g., client address).

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()

        with self._lock:
            if self._sweep_strategy.should_sweep(now):
                self._sweep_locked(now)

            state = self._state_by_key.get(key)
            if state is None or self._is_expired(state, now):
                state = _WindowState(window_start=now, count=1)
                self._state_by_key[key] = state
            else:
                state.count += 1

            reset_at = state.window_start + self._window_seconds
            remaining = max(0, self._limit - state.count)

            if state.count > self._limit:
                return RateLimitResult(
                    allowed=False,
                    limit=self._limit,
                    remaining=0,
                    reset_at=int(math.ceil(reset_at)),
                    retry_after_seconds=max(1, int(math.ceil(reset_at - now))),
                )

            return RateLimitResult(
                allowed=True,
                limit=self._limit,
                remaining=remaining,
                reset_at=int(math.ceil(reset_at)),
                retry_after_seconds=None,
            )

    def sweep(self) -> int:
        """Drop every expired window now.

        Returns:
            Number of client keys evicted.
        """
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        expired = [k for k, s in self._state_by_key.items() if self._is_expired(s, now)]
        for key in expired:
            del self._state_by_key[key]
        if expired:
            logger.debug(
                "rate_limit.swept",
                extra={"evicted": len(expired), "tracked": len(self._state_by_key)},
            )
        return len(expired)
