"""Tests for the sliding window log rate limiter."""

import pytest

from parra.app.ratelimit import SlidingWindowRateLimiter


@pytest.fixture
def window_limiter(clock):
    return SlidingWindowRateLimiter(max_requests=3, window_ms=1000, clock=clock)


class TestAllow:
    """Tests for allow()."""

    def test_allows_up_to_max_then_rejects(self, window_limiter, clock):
        results = []
        for _ in range(4):
            results.append(window_limiter.allow("k"))
            clock.advance(100)
        assert results == [True, True, True, False]

    def test_oldest_request_ages_out(self, window_limiter, clock):
        """Only the oldest slot frees up, not the whole window."""
        for _ in range(3):
            window_limiter.allow("k")
            clock.advance(100)
        assert window_limiter.allow("k") is False

        # First request was at +0; at +1000 it is no longer inside the window
        clock.advance(700)
        assert window_limiter.allow("k") is True
        assert window_limiter.allow("k") is False

    def test_rejection_still_prunes_expired(self, window_limiter, clock):
        for _ in range(3):
            window_limiter.allow("k")
        clock.advance(500)
        assert window_limiter.allow("k") is False
        assert len(window_limiter._logs["k"]) == 3

        clock.advance(600)
        window_limiter.allow("k")
        assert len(window_limiter._logs["k"]) == 1

    def test_rejected_request_is_not_logged(self, window_limiter):
        for _ in range(10):
            window_limiter.allow("k")
        assert len(window_limiter._logs["k"]) == 3

    def test_keys_are_independent(self, window_limiter):
        for _ in range(3):
            window_limiter.allow("a")
        assert window_limiter.allow("a") is False
        assert window_limiter.allow("b") is True


class TestRemaining:
    """Tests for get_remaining()."""

    def test_unknown_key(self, window_limiter):
        assert window_limiter.get_remaining("new") == 3

    def test_counts_live_requests(self, window_limiter, clock):
        window_limiter.allow("k")
        clock.advance(500)
        window_limiter.allow("k")
        assert window_limiter.get_remaining("k") == 1

        clock.advance(600)
        assert window_limiter.get_remaining("k") == 2

    def test_does_not_mutate(self, window_limiter, clock):
        window_limiter.allow("k")
        clock.advance(5000)
        assert window_limiter.get_remaining("k") == 3
        assert len(window_limiter._logs["k"]) == 1
        assert "new" not in window_limiter._logs
        window_limiter.get_remaining("new")
        assert "new" not in window_limiter._logs


class TestResetAndClear:

    def test_reset(self, window_limiter):
        for _ in range(3):
            window_limiter.allow("k")
        window_limiter.reset("k")
        window_limiter.reset("missing")
        assert window_limiter.get_remaining("k") == 3

    def test_clear(self, window_limiter):
        window_limiter.allow("a")
        window_limiter.allow("b")
        window_limiter.clear()
        assert window_limiter.get_remaining("a") == 3
        assert window_limiter.get_remaining("b") == 3

    def test_rejects_bad_parameters(self):
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(max_requests=0, window_ms=1000)
