"""Rate limiting wiring for the HTTP layer.

Rate limiting strategy:
- One window per client address, 30 requests per 60 seconds by default.
- Client address is the first X-Forwarded-For entry, falling back to the
  transport peer. Requests with neither are not limited.
- The limiter instance is owned by the AskService built in the app factory;
  this module only derives keys, builds headers and exposes the dependency.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING

from fastapi import Request

from jiji.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from jiji.adapters.rate_limit.in_memory import (
    InMemoryWindowRateLimiter,
    NoSweep,
    PeriodicSweep,
)
from jiji.core.config import AppSettings

if TYPE_CHECKING:
    from jiji.services.ask_service import AskService


def build_rate_limiter(app_settings: AppSettings) -> AbstractRateLimiter | None:
    """Create the in-memory limiter described by settings, or None if disabled."""
    if not app_settings.rate_limit_enabled:
        return None

    interval = app_settings.rate_limit_sweep_interval_seconds
    return InMemoryWindowRateLimiter(
        limit=app_settings.rate_limit_requests,
        window_seconds=app_settings.rate_limit_window_seconds,
        sweep_strategy=PeriodicSweep(interval) if interval > 0 else NoSweep(),
    )


def client_key_from_request(request: Request) -> str | None:
    """Derive the rate limit key for a request.

    Args:
        request: FastAPI request.

    Returns:
        The first forwarded address, the peer host, or None if neither exists.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    if request.client and request.client.host:
        return request.client.host
    return None


def hash_client_key(key: str) -> str:
    """Hash the client address for logging without storing it verbatim."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "Retry-After": str(result.retry_after_seconds or 0),
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }


async def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency consuming one unit of the caller's budget.

    Runs before the request body is read so throttled clients cost nothing
    beyond the counter update.

    Raises:
        RateLimitedError: 429 Too Many Requests when the limit is exceeded.
    """
    service: AskService = request.app.state.ask_service
    service.check_rate_limit(client_key_from_request(request))
