"""Shared limiter instance and action-level helpers.

The shared ``FixedWindowRateLimiter`` is created on first use, not at import
time, and torn down with ``reset_rate_limiter``. Code that wants isolation
constructs its own limiter and passes it via the ``limiter`` argument.
"""

import re
from typing import Optional

from parra.app.ratelimit.fixed_window import FixedWindowRateLimiter
from parra.app.ratelimit.models import RateLimitConfig, RateLimitResult

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

_rate_limiter: Optional[FixedWindowRateLimiter] = None


def get_rate_limiter() -> FixedWindowRateLimiter:
    """Get the global rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = FixedWindowRateLimiter.from_settings()
    return _rate_limiter


def reset_rate_limiter() -> None:
    """Stop and drop the global rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is not None:
        _rate_limiter.destroy()
    _rate_limiter = None


def make_key(action: str, identifier: str) -> str:
    """Build a limiter key such as ``login:user@example.com``."""
    return f"{action}:{identifier}"


def normalize_identifier(value: str) -> str:
    """Canonicalize a user-supplied identifier (usually an email).

    "  Bob@Example.COM " and "bob@example.com" must share one key, otherwise
    changing case would reset the limit.
    """
    return _CONTROL_CHARS.sub("", value.strip().lower())


def check_rate_limit(
    action: str,
    identifier: str,
    config: RateLimitConfig,
    limiter: Optional[FixedWindowRateLimiter] = None,
) -> RateLimitResult:
    """Check the limit for ``identifier`` performing ``action``."""
    if limiter is None:
        limiter = get_rate_limiter()
    return limiter.check(make_key(action, identifier), config)


def record_rate_limited_action(
    action: str,
    identifier: str,
    limiter: Optional[FixedWindowRateLimiter] = None,
) -> None:
    """Record that ``identifier`` performed ``action``."""
    if limiter is None:
        limiter = get_rate_limiter()
    limiter.record(make_key(action, identifier))


def reset_rate_limit(
    action: str,
    identifier: str,
    limiter: Optional[FixedWindowRateLimiter] = None,
) -> None:
    """Forget recorded attempts for ``identifier`` performing ``action``."""
    if limiter is None:
        limiter = get_rate_limiter()
    limiter.reset(make_key(action, identifier))
