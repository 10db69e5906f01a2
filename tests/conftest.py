"""Shared fixtures for the rate limiting tests."""

import pytest

from parra.app.core.clock import ManualClock
from parra.app.ratelimit.fixed_window import FixedWindowRateLimiter
from parra.app.ratelimit.registry import reset_rate_limiter

T0 = 1_700_000_000_000


@pytest.fixture(autouse=True)
def reset_globals():
    """Reset the shared limiter before and after each test."""
    reset_rate_limiter()
    yield
    reset_rate_limiter()


@pytest.fixture
def clock():
    return ManualClock(start=T0)


@pytest.fixture
def limiter(clock):
    """Fixed-window limiter driven by the manual clock, no sweep thread."""
    limiter = FixedWindowRateLimiter(auto_cleanup=False, clock=clock)
    yield limiter
    limiter.destroy()
