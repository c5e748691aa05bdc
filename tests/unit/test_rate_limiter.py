"""Unit tests for the token-bucket rate limiter and rate-limit resources."""

import threading

import pytest

from searchfeed.lib.errors import ConfigurationError
from searchfeed.lib.rate_limiter import RateLimiter, create_rate_limiter
from tests.helpers import FakeClock, FakeStopEvent


class TestRateLimiter:
    """Tests for RateLimiter."""

    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            RateLimiter(0)

    def test_burst_then_refill(self):
        clock = FakeClock()
        limiter = RateLimiter(2.0, burst_size=2, clock=clock)

        assert limiter.acquire(timeout=0)
        assert limiter.acquire(timeout=0)
        assert not limiter.acquire(timeout=0)

        clock.advance(0.5)
        assert limiter.acquire(timeout=0)
        assert not limiter.acquire(timeout=0)

    def test_tokens_capped_at_burst_size(self):
        clock = FakeClock()
        limiter = RateLimiter(10.0, burst_size=3, clock=clock)
        clock.advance(100)

        results = [limiter.acquire(timeout=0) for _ in range(5)]
        assert results == [True, True, True, False, False]

    def test_acquire_times_out(self):
        clock = FakeClock()
        limiter = RateLimiter(1.0, clock=clock)
        limiter.acquire(timeout=0)

        assert limiter.acquire(timeout=0.1) is False

    def test_acquire_waits_on_stop_event(self):
        clock = FakeClock()
        stop = FakeStopEvent(clock)
        limiter = RateLimiter(4.0, clock=clock)
        limiter.acquire(timeout=0)

        assert limiter.acquire(stop_event=stop) is True
        assert sum(stop.waits) == pytest.approx(0.25, abs=0.11)

    def test_acquire_aborts_when_stopped(self):
        clock = FakeClock()
        limiter = RateLimiter(1.0, clock=clock)
        stop = threading.Event()
        stop.set()

        assert limiter.acquire(stop_event=stop) is False
        # The token was not consumed
        assert limiter.acquire(timeout=0)


class TestCreateRateLimiter:
    """Tests for building rate-limit resources from configuration."""

    def test_count_per_interval(self):
        limiter = create_rate_limiter("searches", {"local": {"count": 450, "interval": "15m"}})
        assert limiter.rate == pytest.approx(0.5)
        assert limiter.burst_size == 450

    def test_defaults(self):
        limiter = create_rate_limiter("searches", {"local": {}})
        assert limiter.rate == pytest.approx(1.0)
        assert limiter.burst_size == 1

    def test_missing_local_block(self):
        with pytest.raises(ConfigurationError, match="'local' block"):
            create_rate_limiter("searches", {})

    def test_invalid_interval(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_rate_limiter("searches", {"local": {"count": 1, "interval": "soon"}})
        assert exc_info.value.field == "rate_limit_resources.searches.local.interval"

    @pytest.mark.parametrize(
        "local",
        [{"count": 0}, {"count": -5}, {"count": "ten"}, {"count": 1, "interval": "0s"}],
    )
    def test_invalid_count_or_interval(self, local):
        with pytest.raises(ConfigurationError, match="positive count"):
            create_rate_limiter("searches", {"local": local})
