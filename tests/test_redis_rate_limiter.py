"""Tests for the Redis-backed rate limiter."""

from unittest.mock import AsyncMock, patch

import asyncio

import fakeredis
import pytest
import redis

from parra.app.core.clock import ManualClock
from parra.app.ratelimit import (
    FixedWindowRateLimiter,
    RateLimitConfig,
    RateLimitResult,
    RedisRateLimiter,
)
from parra.app.ratelimit.redis_backend import TRY_ACQUIRE_SCRIPT

CONFIG = RateLimitConfig(max_attempts=5, window_ms=60_000, block_duration_ms=120_000)


@pytest.fixture
def mock_redis():
    return AsyncMock()


class TestTryAcquire:
    """Tests for RedisRateLimiter.try_acquire."""

    @pytest.mark.asyncio
    async def test_passes_policy_to_script(self, mock_redis):
        mock_redis.eval.return_value = [1, 4, 60_000]
        limiter = RedisRateLimiter(redis_client=mock_redis, key_prefix="test")

        result = await limiter.try_acquire("login:a@b.com", CONFIG)

        assert result == RateLimitResult(allowed=True, remaining=4, reset_in=60_000)
        args = mock_redis.eval.call_args.args
        assert args[0] == TRY_ACQUIRE_SCRIPT
        assert args[1] == 1
        assert args[2] == "test:login:a@b.com"
        assert args[4:] == (5, 60_000, 120_000)

    @pytest.mark.asyncio
    async def test_no_block_duration_sends_zero(self, mock_redis):
        mock_redis.eval.return_value = [1, 29, 60_000]
        limiter = RedisRateLimiter(redis_client=mock_redis)

        await limiter.try_acquire("chat_message:u1", RateLimitConfig(30, 60_000))

        assert mock_redis.eval.call_args.args[-1] == 0

    @pytest.mark.asyncio
    async def test_denied(self, mock_redis):
        mock_redis.eval.return_value = [0, 0, 120_000]
        limiter = RedisRateLimiter(redis_client=mock_redis)

        result = await limiter.try_acquire("login:a@b.com", CONFIG)

        assert result.allowed is False
        assert result.remaining == 0
        assert result.reset_in == 120_000

    @pytest.mark.asyncio
    async def test_fail_open_on_connection_error(self, mock_redis):
        mock_redis.eval.side_effect = redis.ConnectionError("refused")
        limiter = RedisRateLimiter(redis_client=mock_redis)

        with patch("parra.app.ratelimit.redis_backend.settings") as mock_settings:
            mock_settings.rate_limit_fail_closed = False
            result = await limiter.try_acquire("k", CONFIG)

        assert result.allowed is True

    @pytest.mark.asyncio
    async def test_fail_closed_on_timeout(self, mock_redis):
        mock_redis.eval.side_effect = redis.TimeoutError("slow")
        limiter = RedisRateLimiter(redis_client=mock_redis)

        with patch("parra.app.ratelimit.redis_backend.settings") as mock_settings:
            mock_settings.rate_limit_fail_closed = True
            result = await limiter.try_acquire("k", CONFIG)

        assert result.allowed is False
        assert result.reset_in == CONFIG.window_ms

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self, mock_redis):
        mock_redis.eval.side_effect = TypeError("bad argument")
        limiter = RedisRateLimiter(redis_client=mock_redis)

        with pytest.raises(TypeError):
            await limiter.try_acquire("k", CONFIG)


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_reset_deletes_prefixed_key(self, mock_redis):
        limiter = RedisRateLimiter(redis_client=mock_redis, key_prefix="p")
        await limiter.reset("login:a@b.com")
        mock_redis.delete.assert_awaited_once_with("p:login:a@b.com")

    @pytest.mark.asyncio
    async def test_close(self, mock_redis):
        limiter = RedisRateLimiter(redis_client=mock_redis)
        await limiter.close()
        mock_redis.aclose.assert_awaited_once()
        await limiter.close()
        mock_redis.aclose.assert_awaited_once()

    def test_default_prefix_from_settings(self, mock_redis):
        limiter = RedisRateLimiter(redis_client=mock_redis)
        assert limiter._make_key("k") == "parra:ratelimit:k"


# ============================================================================
# Lua script against an in-process Redis
# ============================================================================

T0 = 1_700_000_000_000
SHORT_COOLDOWN = RateLimitConfig(max_attempts=1, window_ms=10_000, block_duration_ms=200)


@pytest.fixture
def fake_redis():
    return fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer())


@pytest.fixture
def manual_clock():
    return ManualClock(start=T0)


class TestTryAcquireScript:
    """Runs TRY_ACQUIRE_SCRIPT on fakeredis and compares with the in-memory limiter."""

    @pytest.mark.asyncio
    async def test_login_scenario(self, fake_redis, manual_clock):
        config = RateLimitConfig(max_attempts=3, window_ms=1000, block_duration_ms=5000)
        limiter = RedisRateLimiter(redis_client=fake_redis, key_prefix="t", clock=manual_clock)

        results = [await limiter.try_acquire("login:a@b.com", config) for _ in range(3)]
        assert [r.allowed for r in results] == [True, True, True]
        assert [r.remaining for r in results] == [2, 1, 0]

        blocked = await limiter.try_acquire("login:a@b.com", config)
        assert blocked == RateLimitResult(allowed=False, remaining=0, reset_in=5000)

        manual_clock.advance(1000)
        still_blocked = await limiter.try_acquire("login:a@b.com", config)
        assert still_blocked == RateLimitResult(allowed=False, remaining=0, reset_in=4000)

        manual_clock.advance(4001)
        fresh = await limiter.try_acquire("login:a@b.com", config)
        assert fresh == RateLimitResult(allowed=True, remaining=2, reset_in=1000)

    @pytest.mark.asyncio
    async def test_reset_in_counts_down_within_window(self, fake_redis, manual_clock):
        config = RateLimitConfig(max_attempts=3, window_ms=1000)
        limiter = RedisRateLimiter(redis_client=fake_redis, clock=manual_clock)

        await limiter.try_acquire("k", config)
        manual_clock.advance(250)
        result = await limiter.try_acquire("k", config)

        assert result == RateLimitResult(allowed=True, remaining=1, reset_in=750)

    @pytest.mark.asyncio
    async def test_denied_without_block_waits_for_window(self, fake_redis, manual_clock):
        config = RateLimitConfig(max_attempts=1, window_ms=1000)
        limiter = RedisRateLimiter(redis_client=fake_redis, clock=manual_clock)

        await limiter.try_acquire("k", config)
        manual_clock.advance(400)
        denied = await limiter.try_acquire("k", config)
        assert denied == RateLimitResult(allowed=False, remaining=0, reset_in=600)

        manual_clock.advance(601)
        assert (await limiter.try_acquire("k", config)).allowed is True

    @pytest.mark.asyncio
    async def test_window_state_outlives_short_cooldown(self, fake_redis, manual_clock):
        limiter = RedisRateLimiter(redis_client=fake_redis, key_prefix="t", clock=manual_clock)

        await limiter.try_acquire("k", SHORT_COOLDOWN)
        manual_clock.advance(100)
        await limiter.try_acquire("k", SHORT_COOLDOWN)

        # 9_900 ms of window remain after a 200 ms cooldown
        assert await fake_redis.pttl("t:k") > 9_800

    @pytest.mark.asyncio
    async def test_short_cooldown_matches_in_memory(self, fake_redis, manual_clock):
        redis_limiter = RedisRateLimiter(redis_client=fake_redis, clock=manual_clock)
        memory_clock = ManualClock(start=T0)
        memory_limiter = FixedWindowRateLimiter(auto_cleanup=False, clock=memory_clock)

        redis_allowed = [
            (await redis_limiter.try_acquire("k", SHORT_COOLDOWN)).allowed for _ in range(2)
        ]
        memory_allowed = [
            memory_limiter.try_acquire("k", SHORT_COOLDOWN).allowed for _ in range(2)
        ]
        manual_clock.advance(350)
        memory_clock.advance(350)
        redis_allowed.append((await redis_limiter.try_acquire("k", SHORT_COOLDOWN)).allowed)
        memory_allowed.append(memory_limiter.try_acquire("k", SHORT_COOLDOWN).allowed)

        assert redis_allowed == memory_allowed == [True, False, False]

    @pytest.mark.asyncio
    async def test_short_cooldown_blocks_again_in_real_time(self, fake_redis):
        limiter = RedisRateLimiter(redis_client=fake_redis)

        first = await limiter.try_acquire("k", SHORT_COOLDOWN)
        second = await limiter.try_acquire("k", SHORT_COOLDOWN)
        await asyncio.sleep(0.35)
        third = await limiter.try_acquire("k", SHORT_COOLDOWN)

        assert [first.allowed, second.allowed, third.allowed] == [True, False, False]
        assert third.reset_in == 200

    @pytest.mark.asyncio
    async def test_reset_clears_block(self, fake_redis, manual_clock):
        limiter = RedisRateLimiter(redis_client=fake_redis, clock=manual_clock)
        await limiter.try_acquire("k", SHORT_COOLDOWN)
        await limiter.try_acquire("k", SHORT_COOLDOWN)

        await limiter.reset("k")

        assert (await limiter.try_acquire("k", SHORT_COOLDOWN)).allowed is True
