"""Token bucket rate limiter.

Refill happens lazily on ``consume``: every whole ``refill_interval_ms``
elapsed since the last refill adds ``refill_rate`` tokens, capped at
``capacity``. ``last_refill`` moves to now on every call, so partial progress
towards the next interval is discarded. Callers hitting a bucket more often
than once per interval therefore see slower refill than the nominal rate.
"""

import threading
from typing import Dict

from parra.app.core.clock import Clock, now_ms
from parra.app.core.logging import get_log_context, get_logger
from parra.app.exceptions import InvalidRateLimitConfigError
from parra.app.ratelimit.models import TokenBucket

logger = get_logger(__name__)


class TokenBucketRateLimiter:
    """In-memory token bucket limiter, one bucket per key."""

    def __init__(
        self,
        capacity: int,
        refill_rate: int,
        refill_interval_ms: int = 1000,
        clock: Clock = now_ms,
    ):
        """Initialize token bucket limiter.

        Args:
            capacity: Maximum tokens a bucket holds; new buckets start full
            refill_rate: Tokens added per elapsed interval
            refill_interval_ms: Interval length
            clock: Time source returning epoch milliseconds
        """
        if capacity < 1:
            raise InvalidRateLimitConfigError("capacity must be at least 1")
        if refill_rate < 0:
            raise InvalidRateLimitConfigError("refill_rate must not be negative")
        if refill_interval_ms < 1:
            raise InvalidRateLimitConfigError("refill_interval_ms must be at least 1")
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.refill_interval_ms = refill_interval_ms
        self._clock = clock
        self._buckets: Dict[str, TokenBucket] = {}
        self._lock = threading.Lock()

    def consume(self, key: str, tokens_needed: int = 1) -> bool:
        """Try to take ``tokens_needed`` tokens from the bucket for ``key``.

        Either all requested tokens are taken or none are.

        Returns:
            True if the tokens were available and deducted
        """
        with self._lock:
            now = self._clock()
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucket(count=self.capacity, last_refill=now)
                self._buckets[key] = bucket

            intervals_elapsed = (now - bucket.last_refill) // self.refill_interval_ms
            bucket.count = min(self.capacity, bucket.count + intervals_elapsed * self.refill_rate)
            bucket.last_refill = now

            if bucket.count >= tokens_needed:
                bucket.count -= tokens_needed
                return True

        logger.debug(
            f"Token bucket empty ({tokens_needed} needed)",
            extra=get_log_context(rate_limit_key=key, allowed=False),
        )
        return False

    def get_tokens(self, key: str) -> int:
        """Current token count as of the last ``consume``; full if unknown."""
        with self._lock:
            bucket = self._buckets.get(key)
            return self.capacity if bucket is None else bucket.count

    def reset(self, key: str) -> None:
        with self._lock:
            self._buckets.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()
