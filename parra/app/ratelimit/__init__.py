"""Rate limiting for Parra Connect user actions.

Three interchangeable in-memory strategies (fixed window with cooldown,
token bucket, sliding window log), the named policy table, and a
Redis-backed fixed window for limits shared between processes.
"""

# Re-export models
from parra.app.ratelimit.models import (
    Admission,
    RateLimitConfig,
    RateLimitEntry,
    RateLimitResult,
    TokenBucket,
)

# Re-export limiters
from parra.app.ratelimit.fixed_window import FixedWindowRateLimiter
from parra.app.ratelimit.sliding_window import SlidingWindowRateLimiter
from parra.app.ratelimit.token_bucket import TokenBucketRateLimiter
from parra.app.ratelimit.redis_backend import RedisRateLimiter

from parra.app.ratelimit.policies import RATE_LIMITS, get_policy
from parra.app.ratelimit.registry import (
    check_rate_limit,
    get_rate_limiter,
    make_key,
    normalize_identifier,
    record_rate_limited_action,
    reset_rate_limit,
    reset_rate_limiter,
)
from parra.app.ratelimit.actions import ActionRateLimiter

__all__ = [
    # Models
    "Admission",
    "RateLimitConfig",
    "RateLimitEntry",
    "RateLimitResult",
    "TokenBucket",
    # Limiters
    "FixedWindowRateLimiter",
    "SlidingWindowRateLimiter",
    "TokenBucketRateLimiter",
    "RedisRateLimiter",
    "ActionRateLimiter",
    # Policies and helpers
    "RATE_LIMITS",
    "get_policy",
    "check_rate_limit",
    "get_rate_limiter",
    "make_key",
    "normalize_identifier",
    "record_rate_limited_action",
    "reset_rate_limit",
    "reset_rate_limiter",
]
