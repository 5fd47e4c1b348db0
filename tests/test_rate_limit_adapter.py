"""Unit tests for the in-memory per-client window rate limiter."""

import threading
from unittest.mock import Mock

import pytest

from jiji.adapters.rate_limit.in_memory import (
    InMemoryWindowRateLimiter,
    NoSweep,
    PeriodicSweep,
)


def test_allows_up_to_limit_in_same_window() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryWindowRateLimiter(limit=3, window_seconds=60, clock=clock)

    assert limiter.consume("k").allowed is True
    assert limiter.consume("k").allowed is True
    result = limiter.consume("k")
    assert result.allowed is True
    assert result.remaining == 0


def test_thirty_first_request_in_window_is_denied() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryWindowRateLimiter(limit=30, window_seconds=60, clock=clock)

    for i in range(30):
        clock.return_value = 1000.0 + i * 0.3
        assert limiter.check_and_record("10.0.0.1") is True

    clock.return_value = 1009.9
    assert limiter.check_and_record("10.0.0.1") is False


def test_blocked_result_carries_retry_metadata() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryWindowRateLimiter(limit=2, window_seconds=60, clock=clock)

    limiter.consume("k")
    limiter.consume("k")
    clock.return_value = 1015.0
    blocked = limiter.consume("k")

    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.reset_at == 1060
    assert blocked.retry_after_seconds == 45


def test_denied_requests_still_count() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryWindowRateLimiter(limit=1, window_seconds=60, clock=clock)

    assert limiter.consume("k").allowed is True
    for _ in range(5):
        assert limiter.consume("k").allowed is False


def test_window_starts_at_first_request_not_clock_boundary() -> None:
    # 1059 would be the last second of a clock-aligned window starting at 1020.
    clock = Mock(return_value=1059.0)
    limiter = InMemoryWindowRateLimiter(limit=1, window_seconds=60, clock=clock)

    assert limiter.consume("k").allowed is True

    clock.return_value = 1061.0
    assert limiter.consume("k").allowed is False

    clock.return_value = 1119.0
    assert limiter.consume("k").allowed is False


def test_window_is_replaced_only_after_age_exceeds_length() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryWindowRateLimiter(limit=1, window_seconds=10, clock=clock)

    assert limiter.consume("k").allowed is True

    clock.return_value = 1010.0  # age == window length: same window
    assert limiter.consume("k").allowed is False

    clock.return_value = 1010.5
    result = limiter.consume("k")
    assert result.allowed is True
    assert result.reset_at == 1021


def test_burst_across_boundary_admits_twice_the_limit() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryWindowRateLimiter(limit=3, window_seconds=10, clock=clock)

    clock.return_value = 1009.0
    allowed = sum(limiter.consume("k").allowed for _ in range(3))
    clock.return_value = 1019.5
    allowed += sum(limiter.consume("k").allowed for _ in range(3))

    assert allowed == 6


def test_isolated_by_key() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryWindowRateLimiter(limit=1, window_seconds=60, clock=clock)

    assert limiter.consume("k1").allowed is True
    assert limiter.consume("k1").allowed is False

    assert limiter.consume("k2").allowed is True


def test_concurrent_same_key_does_not_lose_updates() -> None:
    limiter = InMemoryWindowRateLimiter(limit=1000, window_seconds=60)
    results: list[bool] = []
    lock = threading.Lock()

    def worker() -> None:
        for _ in range(100):
            allowed = limiter.check_and_record("shared")
            with lock:
                results.append(allowed)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 800
    assert limiter.consume("shared").remaining == 1000 - 801


@pytest.mark.parametrize(
    "kwargs",
    [
        {"limit": 0, "window_seconds": 60},
        {"limit": 1, "window_seconds": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        InMemoryWindowRateLimiter(**kwargs)


def test_empty_key_rejected() -> None:
    limiter = InMemoryWindowRateLimiter(limit=1, window_seconds=60)

    with pytest.raises(ValueError):
        limiter.consume("")


class TestSweep:
    """Stale window eviction."""

    def test_manual_sweep_removes_only_expired_windows(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = InMemoryWindowRateLimiter(limit=5, window_seconds=10, clock=clock)

        limiter.consume("old")
        clock.return_value = 1008.0
        limiter.consume("fresh")

        clock.return_value = 1012.0
        assert limiter.sweep() == 1
        assert len(limiter) == 1

    def test_no_sweep_keeps_every_window(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = InMemoryWindowRateLimiter(
            limit=5, window_seconds=10, sweep_strategy=NoSweep(), clock=clock
        )

        for i in range(10):
            limiter.consume(f"client-{i}")
        clock.return_value = 5000.0
        limiter.consume("late")

        assert len(limiter) == 11

    def test_periodic_sweep_runs_during_consume(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = InMemoryWindowRateLimiter(
            limit=5,
            window_seconds=15,
            sweep_strategy=PeriodicSweep(interval_seconds=30),
            clock=clock,
        )

        for i in range(10):
            limiter.consume(f"client-{i}")

        clock.return_value = 1020.0  # windows expired, interval not yet elapsed
        limiter.consume("probe")
        assert len(limiter) == 11

        clock.return_value = 1031.0
        limiter.consume("probe-2")
        # "probe" (opened at 1020) is still live; everything older is gone
        assert len(limiter) == 2

    def test_periodic_sweep_rejects_non_positive_interval(self) -> None:
        with pytest.raises(ValueError):
            PeriodicSweep(interval_seconds=0)
