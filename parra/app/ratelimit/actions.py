"""Limiter bound to one action and policy.

Form and chat handlers hold one of these instead of passing the action name
and policy on every call::

    login_limit = ActionRateLimiter("login", LOGIN)

    def submit(email, password):
        email = normalize_identifier(email)
        with login_limit.guard(email):
            return auth.sign_in(email, password)
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from parra.app.core.logging import get_log_context, get_logger
from parra.app.exceptions import RateLimitError
from parra.app.ratelimit.fixed_window import FixedWindowRateLimiter
from parra.app.ratelimit.models import RateLimitConfig, RateLimitResult
from parra.app.ratelimit.registry import (
    check_rate_limit,
    record_rate_limited_action,
    reset_rate_limit,
)
from parra.app.utils.formatting import format_time_remaining

logger = get_logger(__name__)


class ActionRateLimiter:
    """Fixed-window limiting for a single named action."""

    def __init__(
        self,
        action: str,
        config: RateLimitConfig,
        limiter: Optional[FixedWindowRateLimiter] = None,
    ):
        """Initialize action limiter.

        Args:
            action: Action name, used as the key prefix
            config: Policy applied to every identifier
            limiter: Limiter holding the state; the shared one if omitted
        """
        self.action = action
        self.config = config
        self._limiter = limiter

    def check(self, identifier: str) -> RateLimitResult:
        return check_rate_limit(self.action, identifier, self.config, self._limiter)

    def is_allowed(self, identifier: str) -> bool:
        return self.check(identifier).allowed

    def record(self, identifier: str) -> None:
        record_rate_limited_action(self.action, identifier, self._limiter)

    def reset(self, identifier: str) -> None:
        reset_rate_limit(self.action, identifier, self._limiter)

    def get_time_remaining(self, identifier: str) -> str:
        """Human-readable time until ``identifier`` may try again."""
        return format_time_remaining(self.check(identifier).reset_in)

    @contextmanager
    def guard(self, identifier: str) -> Iterator[RateLimitResult]:
        """Run a block only if the action is allowed.

        The attempt is recorded before the block runs, so a failed sign-in
        still counts towards the limit.

        Raises:
            RateLimitError: If the action is currently denied.
        """
        result = self.check(identifier)
        if not result.allowed:
            logger.info(
                f"Rate limit exceeded for action {self.action}",
                extra=get_log_context(action=self.action, reset_in_ms=result.reset_in),
            )
            raise RateLimitError(
                f"Too many {self.action} attempts",
                reset_in=result.reset_in,
                remaining=result.remaining,
            )
        self.record(identifier)
        yield result
