"""Rate limiting data models.

This module contains dataclasses for rate limit policies, state and results.
All timestamps and durations are integer milliseconds.
"""

from dataclasses import dataclass, field
from typing import Optional

from parra.app.exceptions import InvalidRateLimitConfigError


@dataclass(frozen=True)
class RateLimitConfig:
    """Policy for the fixed-window limiter.

    Attributes:
        max_attempts: Attempts allowed per window
        window_ms: Window length, measured from the first attempt
        block_duration_ms: Cooldown entered once the window is exhausted.
            None or 0 disables blocking.
    """
    max_attempts: int
    window_ms: int
    block_duration_ms: Optional[int] = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise InvalidRateLimitConfigError(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )
        if self.window_ms < 1:
            raise InvalidRateLimitConfigError(
                f"window_ms must be at least 1, got {self.window_ms}"
            )
        if self.block_duration_ms is not None and self.block_duration_ms < 0:
            raise InvalidRateLimitConfigError(
                f"block_duration_ms must not be negative, got {self.block_duration_ms}"
            )


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    remaining: int
    reset_in: int


@dataclass
class RateLimitEntry:
    """Entry for tracking fixed-window state for one key."""
    attempts: int
    first_attempt: int
    last_attempt: int
    blocked: bool = False
    blocked_until: Optional[int] = None

    def is_blocked(self, now: int) -> bool:
        return self.blocked and self.blocked_until is not None and self.blocked_until > now


@dataclass
class TokenBucket:
    """Token bucket state for token bucket algorithm."""
    count: int
    last_refill: int


@dataclass
class Admission:
    """Pending decision from ``FixedWindowRateLimiter.admit``.

    An allowed admission must be finalized with ``commit`` (the attempt is
    recorded) or ``cancel`` (nothing is recorded).
    """
    key: str
    result: RateLimitResult
    finalized: bool = field(default=False)
    committed: bool = field(default=False)

    @property
    def allowed(self) -> bool:
        return self.result.allowed
