"""Redis-backed fixed-window rate limiter.

The in-memory limiters only protect one process. This backend keeps the
fixed-window state in Redis so limits hold across restarts and across
multiple API instances. Check, block and increment run in one Lua script,
which closes the check-then-record race of the in-memory two-call API.

Redis key format:
- {prefix}:{key} - hash with attempts, first, last, blocked_until (ms)
"""

from typing import Any, Optional

import redis

from parra.app.core.clock import Clock, now_ms
from parra.app.core.config import settings
from parra.app.core.logging import get_log_context, get_logger
from parra.app.ratelimit.models import RateLimitConfig, RateLimitResult

logger = get_logger(__name__)

# Returns {allowed, remaining, reset_in_ms}. Same decision table as
# FixedWindowRateLimiter.try_acquire.
TRY_ACQUIRE_SCRIPT = """
    local key = KEYS[1]
    local now = tonumber(ARGV[1])
    local max_attempts = tonumber(ARGV[2])
    local window_ms = tonumber(ARGV[3])
    local block_ms = tonumber(ARGV[4])

    local state = redis.call('HMGET', key, 'attempts', 'first', 'blocked_until')
    local attempts = tonumber(state[1])
    local first = tonumber(state[2])
    local blocked_until = tonumber(state[3])

    -- Cooldown still running
    if blocked_until and blocked_until > now then
        return {0, 0, blocked_until - now}
    end

    -- No window yet or window expired: start a new one with this attempt.
    -- State outlives its window by 1 ms so expiry never races the boundary.
    if (not attempts) or (now - first > window_ms) then
        redis.call('DEL', key)
        redis.call('HSET', key, 'attempts', 1, 'first', now, 'last', now)
        redis.call('PEXPIRE', key, math.max(window_ms, block_ms) + 1)
        return {1, max_attempts - 1, window_ms}
    end

    local reset_in = window_ms - (now - first)

    if attempts >= max_attempts then
        if block_ms > 0 then
            redis.call('HSET', key, 'blocked_until', now + block_ms)
            -- Keep the window state alive past a cooldown shorter than the window
            redis.call('PEXPIRE', key, math.max(block_ms, reset_in) + 1)
            return {0, 0, block_ms}
        end
        return {0, 0, reset_in}
    end

    redis.call('HINCRBY', key, 'attempts', 1)
    redis.call('HSET', key, 'last', now)
    return {1, max_attempts - attempts - 1, reset_in}
"""


class RedisRateLimiter:
    """Distributed fixed-window limiter with cooldown.

    Only offers the fused ``try_acquire``; a separate check/record pair would
    reintroduce the race across instances.
    """

    def __init__(
        self,
        redis_client: Optional[Any] = None,
        redis_url: Optional[str] = None,
        key_prefix: Optional[str] = None,
        clock: Clock = now_ms,
    ):
        """Initialize Redis rate limiter.

        Args:
            redis_client: Optional redis.asyncio client instance
            redis_url: Redis connection URL, defaults to settings.redis_url
            key_prefix: Namespace for limiter keys
            clock: Time source returning epoch milliseconds
        """
        self._redis = redis_client
        self._redis_url = redis_url or settings.redis_url
        self._key_prefix = key_prefix or settings.redis_key_prefix
        self._clock = clock

    def _get_redis(self) -> Any:
        """Get or create Redis connection."""
        if self._redis is None:
            import redis.asyncio as aioredis
            self._redis = aioredis.from_url(self._redis_url)
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"{self._key_prefix}:{key}"

    async def try_acquire(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        """Atomically check and record an attempt for ``key``."""
        now = self._clock()
        try:
            client = self._get_redis()
            result = await client.eval(
                TRY_ACQUIRE_SCRIPT,
                1,  # Number of keys
                self._make_key(key),  # KEYS[1]
                now,  # ARGV[1]
                config.max_attempts,  # ARGV[2]
                config.window_ms,  # ARGV[3]
                config.block_duration_ms or 0,  # ARGV[4]
            )
        except redis.ConnectionError as e:
            logger.error(f"Redis connection failed: {e}")
            return self._handle_redis_failure("connection_error", config)
        except redis.TimeoutError as e:
            logger.warning(f"Redis timeout: {e}")
            return self._handle_redis_failure("timeout", config)
        except redis.RedisError as e:
            logger.error(f"Redis error: {e}")
            return self._handle_redis_failure("redis_error", config)

        decision = RateLimitResult(
            allowed=bool(int(result[0])),
            remaining=int(result[1]),
            reset_in=int(result[2]),
        )
        logger.debug(
            "Rate limit decision",
            extra=get_log_context(
                rate_limit_key=key, allowed=decision.allowed, reset_in_ms=decision.reset_in
            ),
        )
        return decision

    def _handle_redis_failure(self, error_type: str, config: RateLimitConfig) -> RateLimitResult:
        """Apply the fail-open/fail-closed policy when Redis is unavailable."""
        if settings.rate_limit_fail_closed:
            logger.warning(
                f"Rate limiting fail-closed triggered due to {error_type}. "
                "Request denied."
            )
            return RateLimitResult(allowed=False, remaining=0, reset_in=config.window_ms)

        logger.warning(
            f"Rate limiting fail-open triggered due to {error_type}. "
            "Request allowed without rate limit check."
        )
        return RateLimitResult(
            allowed=True, remaining=config.max_attempts - 1, reset_in=config.window_ms
        )

    async def reset(self, key: str) -> None:
        """Forget all state for ``key``."""
        await self._get_redis().delete(self._make_key(key))

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._redis is not None:
            try:
                await self._redis.aclose()
            except redis.RedisError as e:
                logger.warning(f"Error closing Redis connection: {e}")
            self._redis = None
