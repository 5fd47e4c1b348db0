"""Rate limiting adapters.

A small abstraction layer so the per-process limiter can later move to
Redis or another shared store without changing the ask pipeline.
"""

from jiji.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from jiji.adapters.rate_limit.in_memory import (
    AbstractSweepStrategy,
    InMemoryWindowRateLimiter,
    NoSweep,
    PeriodicSweep,
)

__all__ = [
    "AbstractRateLimiter",
    "AbstractSweepStrategy",
    "InMemoryWindowRateLimiter",
    "NoSweep",
    "PeriodicSweep",
    "RateLimitResult",
]
