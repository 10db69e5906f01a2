"""Wall-clock time sources for the rate limiters.

All limiter arithmetic is done in integer milliseconds since the epoch.
"""

import time
from typing import Protocol


class Clock(Protocol):
    """Callable returning the current time in milliseconds."""

    def __call__(self) -> int: ...


def now_ms() -> int:
    """Return the current wall-clock time in milliseconds."""
    return time.time_ns() // 1_000_000


class ManualClock:
    """Clock that only moves when told to.

    Example:
        >>> clock = ManualClock(start=1_000)
        >>> clock.advance(500)
        >>> clock()
        1500
    """

    def __init__(self, start: int = 0) -> None:
        self.current = start

    def __call__(self) -> int:
        return self.current

    def advance(self, ms: int) -> None:
        self.current += ms

    def set(self, ms: int) -> None:
        self.current = ms
