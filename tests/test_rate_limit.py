"""
Tests for FixedWindowRateLimiter
"""
import pytest

from thorbis.lifecycle.rate_limit import FixedWindowRateLimiter


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return FixedWindowRateLimiter(limit=3, window_seconds=60, clock=clock)


@pytest.mark.unit
class TestFixedWindow:
    def test_allows_up_to_limit(self, limiter):
        remaining = [limiter.hit("a", "write:invoice").remaining for _ in range(3)]
        assert remaining == [2, 1, 0]

    def test_rejects_over_limit_with_retry_after(self, limiter, clock):
        for _ in range(3):
            limiter.hit("a", "write:invoice")
        clock.now += 15.5
        decision = limiter.hit("a", "write:invoice")
        assert not decision.allowed
        assert decision.remaining == 0
        assert decision.retry_after == 45

    def test_keys_are_independent(self, limiter):
        for _ in range(3):
            limiter.hit("a", "write:invoice")
        assert limiter.hit("a", "write:workorder").allowed
        assert limiter.hit("b", "write:invoice").allowed

    def test_window_resets(self, limiter, clock):
        for _ in range(4):
            limiter.hit("a", "write:invoice")
        clock.now += 60
        decision = limiter.hit("a", "write:invoice")
        assert decision.allowed
        assert decision.remaining == 2

    def test_evict_expired(self, limiter, clock):
        limiter.hit("a", "x")
        clock.now += 30
        limiter.hit("b", "x")
        clock.now += 31
        assert limiter.evict_expired() == 1
        assert len(limiter) == 1

    def test_reset_by_actor(self, limiter):
        limiter.hit("a", "x")
        limiter.hit("a", "y")
        limiter.hit("b", "x")
        limiter.reset("a")
        assert len(limiter) == 1
        limiter.reset()
        assert len(limiter) == 0

    @pytest.mark.parametrize("limit,window", [(0, 60), (5, 0)])
    def test_invalid_configuration(self, limit, window):
        with pytest.raises(ValueError):
            FixedWindowRateLimiter(limit=limit, window_seconds=window)
