"""Fixed-window rate limiter with optional blocking cooldown.

The window starts at the first attempt and does not slide. Once a caller has
used up ``max_attempts`` inside the window, a policy with ``block_duration_ms``
puts the key into a cooldown during which every check fails.

Usage contract: ``check`` and ``record`` are separate calls so a form handler
can check first and only record when it actually performs the action. A
``check`` that starts a new window does not count as an attempt, so a caller
who never calls ``record`` is never limited. ``try_acquire`` and the
``admit``/``commit`` pair fuse both steps for callers that want that.

NOTE: This is in-memory, per-process state. Limits that must hold across
restarts or multiple instances need ``RedisRateLimiter``.
"""

import threading
from typing import Dict, Optional

from parra.app.core.clock import Clock, now_ms
from parra.app.core.config import settings
from parra.app.core.logging import get_log_context, get_logger
from parra.app.exceptions import AdmissionStateError
from parra.app.ratelimit.models import (
    Admission,
    RateLimitConfig,
    RateLimitEntry,
    RateLimitResult,
)

logger = get_logger(__name__)


class FixedWindowRateLimiter:
    """In-memory fixed-window limiter keyed by caller-defined strings.

    Thread safety: every public method runs under one re-entrant lock, which
    is shared with the background sweep thread.
    """

    DEFAULT_CLEANUP_INTERVAL_MS = 60_000
    DEFAULT_MAX_ENTRY_AGE_MS = 3_600_000  # 1 hour

    def __init__(
        self,
        cleanup_interval_ms: int = DEFAULT_CLEANUP_INTERVAL_MS,
        max_entry_age_ms: int = DEFAULT_MAX_ENTRY_AGE_MS,
        auto_cleanup: bool = True,
        clock: Clock = now_ms,
    ):
        """Initialize rate limiter.

        Args:
            cleanup_interval_ms: How often the sweep thread runs
            max_entry_age_ms: Entries whose last attempt is older than this
                are dropped by the sweep
            auto_cleanup: Start the sweep thread immediately
            clock: Time source returning epoch milliseconds
        """
        self._cleanup_interval_ms = cleanup_interval_ms
        self._max_entry_age_ms = max_entry_age_ms
        self._clock = clock
        self._store: Dict[str, RateLimitEntry] = {}
        self._lock = threading.RLock()
        self._shutdown_event = threading.Event()
        self._cleanup_thread: Optional[threading.Thread] = None

        if auto_cleanup:
            self.start_cleanup()

    @classmethod
    def from_settings(cls) -> "FixedWindowRateLimiter":
        """Build a limiter from the application settings."""
        return cls(
            cleanup_interval_ms=settings.rate_limit_cleanup_interval_ms,
            max_entry_age_ms=settings.rate_limit_max_entry_age_ms,
            auto_cleanup=settings.rate_limit_auto_cleanup,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._store

    def get_entry(self, key: str) -> Optional[RateLimitEntry]:
        """Return the stored state for a key, if any."""
        with self._lock:
            return self._store.get(key)

    def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        """Check whether an attempt for ``key`` is currently allowed.

        Starts a fresh window when none exists or the previous one expired,
        and moves the key into cooldown when the window is exhausted and the
        policy has a block duration. Does not count an attempt; call
        ``record`` after performing the action.

        Args:
            key: Unique key for the action (e.g. 'login:user@example.com')
            config: Rate limit policy

        Returns:
            RateLimitResult with allowed status, remaining attempts and the
            time in ms until the window or cooldown ends
        """
        with self._lock:
            now = self._clock()
            entry = self._store.get(key)

            if entry is not None and entry.is_blocked(now):
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_in=entry.blocked_until - now,
                )

            # No previous entry or window expired
            if entry is None or now - entry.first_attempt > config.window_ms:
                self._store[key] = RateLimitEntry(
                    attempts=0, first_attempt=now, last_attempt=now
                )
                return RateLimitResult(
                    allowed=True,
                    remaining=config.max_attempts - 1,
                    reset_in=config.window_ms,
                )

            remaining = config.max_attempts - entry.attempts
            reset_in = config.window_ms - (now - entry.first_attempt)

            if entry.attempts >= config.max_attempts:
                if config.block_duration_ms:
                    entry.blocked = True
                    entry.blocked_until = now + config.block_duration_ms
                    logger.info(
                        f"Rate limit key blocked for {config.block_duration_ms} ms",
                        extra=get_log_context(
                            rate_limit_key=key, reset_in_ms=config.block_duration_ms
                        ),
                    )
                    return RateLimitResult(
                        allowed=False, remaining=0, reset_in=config.block_duration_ms
                    )
                return RateLimitResult(allowed=False, remaining=0, reset_in=reset_in)

            return RateLimitResult(allowed=True, remaining=remaining - 1, reset_in=reset_in)

    def record(self, key: str) -> None:
        """Record an attempt for ``key``."""
        with self._lock:
            now = self._clock()
            entry = self._store.get(key)
            if entry is None:
                self._store[key] = RateLimitEntry(
                    attempts=1, first_attempt=now, last_attempt=now
                )
                return
            entry.attempts += 1
            entry.last_attempt = now

    def try_acquire(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        """Check and, if allowed, record the attempt in one critical section.

        Two threads racing on the same key cannot both pass the last slot.
        """
        with self._lock:
            result = self.check(key, config)
            if result.allowed:
                self.record(key)
            logger.debug(
                "Rate limit decision",
                extra=get_log_context(
                    rate_limit_key=key, allowed=result.allowed, reset_in_ms=result.reset_in
                ),
            )
            return result

    def admit(self, key: str, config: RateLimitConfig) -> Admission:
        """First phase of an explicit admit/commit cycle.

        Runs ``check`` and returns an ``Admission``. Nothing is counted until
        ``commit`` is called with it.
        """
        return Admission(key=key, result=self.check(key, config))

    def commit(self, admission: Admission) -> None:
        """Record the attempt for an allowed admission."""
        if admission.finalized:
            raise AdmissionStateError(f"Admission for {admission.key!r} already finalized")
        if not admission.allowed:
            raise AdmissionStateError(f"Cannot commit denied admission for {admission.key!r}")
        self.record(admission.key)
        admission.finalized = True
        admission.committed = True

    def cancel(self, admission: Admission) -> None:
        """Finalize an admission without recording an attempt."""
        if admission.finalized:
            raise AdmissionStateError(f"Admission for {admission.key!r} already finalized")
        admission.finalized = True

    def reset(self, key: str) -> None:
        """Forget all state for ``key``. Missing keys are ignored."""
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        """Forget all state."""
        with self._lock:
            self._store.clear()

    def cleanup(self) -> int:
        """Remove entries whose last attempt is older than the max age.

        Blocked entries are removed too.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            expired = [
                key for key, entry in self._store.items()
                if now - entry.last_attempt > self._max_entry_age_ms
            ]
            for key in expired:
                del self._store[key]

        if expired:
            logger.info(f"Rate limiter sweep removed {len(expired)} stale entries")
        return len(expired)

    def start_cleanup(self) -> None:
        """Start the periodic sweep thread."""
        if self._cleanup_thread is not None:
            return
        self._shutdown_event.clear()
        self._cleanup_thread = threading.Thread(
            target=self._cleanup_loop,
            name="rate-limit-cleanup",
            daemon=True,
        )
        self._cleanup_thread.start()
        logger.debug("Started rate limiter cleanup thread")

    def destroy(self) -> None:
        """Stop the periodic sweep thread. Stored state is kept."""
        if self._cleanup_thread is None:
            return
        self._shutdown_event.set()
        self._cleanup_thread.join(timeout=5.0)
        self._cleanup_thread = None
        logger.debug("Stopped rate limiter cleanup thread")

    @property
    def cleanup_running(self) -> bool:
        return self._cleanup_thread is not None

    def _cleanup_loop(self) -> None:
        """Background loop for the periodic sweep."""
        interval = self._cleanup_interval_ms / 1000
        while not self._shutdown_event.wait(timeout=interval):
            try:
                self.cleanup()
            except Exception as e:
                logger.error(f"Error during rate limiter cleanup: {e}")
