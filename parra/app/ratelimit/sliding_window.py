"""Sliding window log rate limiter.

Keeps the timestamp of every admitted request inside the window, so old
requests age out one at a time instead of all at once as in the fixed window.
"""

import threading
from typing import Dict, List

from parra.app.core.clock import Clock, now_ms
from parra.app.core.logging import get_log_context, get_logger
from parra.app.exceptions import InvalidRateLimitConfigError

logger = get_logger(__name__)


class SlidingWindowRateLimiter:
    """In-memory sliding window log limiter."""

    def __init__(self, max_requests: int, window_ms: int, clock: Clock = now_ms):
        if max_requests < 1:
            raise InvalidRateLimitConfigError("max_requests must be at least 1")
        if window_ms < 1:
            raise InvalidRateLimitConfigError("window_ms must be at least 1")
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._clock = clock
        self._logs: Dict[str, List[int]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str, now: int) -> List[int]:
        window_start = now - self.window_ms
        return [ts for ts in self._logs.get(key, ()) if ts > window_start]

    def allow(self, key: str) -> bool:
        """Check and record a request.

        Expired timestamps are dropped even when the request is rejected.
        """
        with self._lock:
            now = self._clock()
            requests = self._live(key, now)

            if len(requests) < self.max_requests:
                requests.append(now)
                self._logs[key] = requests
                return True

            self._logs[key] = requests

        logger.debug(
            "Sliding window full",
            extra=get_log_context(rate_limit_key=key, allowed=False),
        )
        return False

    def get_remaining(self, key: str) -> int:
        """Requests still allowed in the current window. Does not modify state."""
        with self._lock:
            return max(0, self.max_requests - len(self._live(key, self._clock())))

    def reset(self, key: str) -> None:
        with self._lock:
            self._logs.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._logs.clear()
