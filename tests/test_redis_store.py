"""Unit tests for the Redis counter store adapter."""

from unittest.mock import AsyncMock, MagicMock, patch

import fakeredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.adapters.rate_limit.redis_store import RedisCounterStore
from app.core.errors import ConfigurationAppError, CounterStoreAppError
from app.services.rate_limiter import FixedWindowRateLimiter


def _mock_redis(execute_result=None, execute_side_effect=None):
    """Build a mock redis client whose transactional pipeline is inspectable."""
    mock_redis = MagicMock()
    mock_pipeline = MagicMock()
    mock_pipeline.execute = AsyncMock(
        return_value=execute_result, side_effect=execute_side_effect
    )
    mock_redis.pipeline.return_value.__aenter__.return_value = mock_pipeline
    mock_redis.aclose = AsyncMock()
    return mock_redis, mock_pipeline


class TestRedisCounterStore:
    """Test cases for RedisCounterStore."""

    @pytest.mark.asyncio
    async def test_incr_and_expire_sent_in_one_transaction(self):
        mock_redis, mock_pipeline = _mock_redis(execute_result=[3, True])
        store = RedisCounterStore(mock_redis)

        count = await store.incr_with_expiry("1.2.3.4", 60)

        assert count == 3
        mock_redis.pipeline.assert_called_once_with(transaction=True)
        mock_pipeline.incr.assert_called_once_with("rate_limit:1.2.3.4")
        mock_pipeline.expire.assert_called_once_with("rate_limit:1.2.3.4", 60)
        mock_pipeline.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_custom_key_prefix(self):
        mock_redis, mock_pipeline = _mock_redis(execute_result=[1, True])
        store = RedisCounterStore(mock_redis, key_prefix="gate:")

        await store.incr_with_expiry("5.6.7.8", 30)

        mock_pipeline.incr.assert_called_once_with("gate:5.6.7.8")
        mock_pipeline.expire.assert_called_once_with("gate:5.6.7.8", 30)

    @pytest.mark.asyncio
    async def test_string_count_is_coerced_to_int(self):
        mock_redis, _ = _mock_redis(execute_result=["7", True])
        store = RedisCounterStore(mock_redis)

        assert await store.incr_with_expiry("k", 60) == 7

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [RedisConnectionError("connection refused"), RedisTimeoutError("timed out")],
    )
    async def test_redis_errors_become_counter_store_errors(self, error):
        mock_redis, _ = _mock_redis(execute_side_effect=error)
        store = RedisCounterStore(mock_redis)

        with pytest.raises(CounterStoreAppError) as exc_info:
            await store.incr_with_expiry("k", 60)

        assert exc_info.value.code == "counter_store_unavailable"
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_close_releases_connection_pool(self):
        mock_redis, _ = _mock_redis()
        store = RedisCounterStore(mock_redis)

        await store.close()

        mock_redis.aclose.assert_awaited_once()

    def test_from_url_configures_client(self):
        with patch("app.adapters.rate_limit.redis_store.redis.from_url") as mock_from_url:
            store = RedisCounterStore.from_url(
                "redis://cache:6379/1",
                key_prefix="gate:",
                socket_timeout=0.5,
                socket_connect_timeout=0.25,
            )

        mock_from_url.assert_called_once()
        args, kwargs = mock_from_url.call_args
        assert args == ("redis://cache:6379/1",)
        assert kwargs["socket_timeout"] == 0.5
        assert kwargs["socket_connect_timeout"] == 0.25
        assert kwargs["decode_responses"] is True
        assert store._make_key("k") == "gate:k"

    @pytest.mark.asyncio
    async def test_failed_expire_is_not_a_partial_success(self):
        mock_redis, mock_pipeline = _mock_redis(
            execute_result=[1, ResponseError("value is not an integer or out of range")]
        )
        store = RedisCounterStore(mock_redis)

        with pytest.raises(CounterStoreAppError) as exc_info:
            await store.incr_with_expiry("k", 60)

        assert exc_info.value.code == "counter_store_command_failed"
        mock_pipeline.execute.assert_awaited_once_with(raise_on_error=False)

    @pytest.mark.asyncio
    async def test_expire_not_applied_raises(self):
        mock_redis, _ = _mock_redis(execute_result=[1, False])
        store = RedisCounterStore(mock_redis)

        with pytest.raises(CounterStoreAppError) as exc_info:
            await store.incr_with_expiry("k", 60)

        assert exc_info.value.code == "counter_store_expiry_not_set"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ttl", [0.5, 0, -1, True])
    async def test_invalid_ttl_never_reaches_redis(self, ttl):
        mock_redis, _ = _mock_redis(execute_result=[1, True])
        store = RedisCounterStore(mock_redis)

        with pytest.raises(ConfigurationAppError):
            await store.incr_with_expiry("k", ttl)

        mock_redis.pipeline.assert_not_called()


@pytest.fixture
def fake_redis():
    """Isolated in-process Redis speaking the real protocol semantics."""
    return fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)


class TestRedisCounterStoreTransaction:
    """MULTI/EXEC behavior against an in-process Redis server."""

    @pytest.mark.asyncio
    async def test_sets_ttl_within_window(self, fake_redis):
        store = RedisCounterStore(fake_redis)

        for expected in (1, 2, 3):
            assert await store.incr_with_expiry("1.2.3.4", 60) == expected
            ttl = await fake_redis.ttl("rate_limit:1.2.3.4")
            assert 0 < ttl <= 60

    @pytest.mark.asyncio
    async def test_every_increment_refreshes_ttl(self, fake_redis):
        store = RedisCounterStore(fake_redis)

        await store.incr_with_expiry("k", 60)
        await fake_redis.expire("rate_limit:k", 5)
        await store.incr_with_expiry("k", 60)

        assert await fake_redis.ttl("rate_limit:k") > 5

    @pytest.mark.asyncio
    async def test_fractional_ttl_leaves_no_counter_behind(self, fake_redis):
        store = RedisCounterStore(fake_redis)

        with pytest.raises(ConfigurationAppError):
            await store.incr_with_expiry("k", 0.5)

        assert await fake_redis.exists("rate_limit:k") == 0

    def test_fractional_window_rejected_at_construction(self, fake_redis):
        with pytest.raises(ConfigurationAppError):
            FixedWindowRateLimiter(RedisCounterStore(fake_redis), limit=5, window_seconds=0.5)

    @pytest.mark.asyncio
    async def test_limiter_over_redis_never_leaves_immortal_counter(self, fake_redis):
        limiter = FixedWindowRateLimiter(RedisCounterStore(fake_redis), limit=5, window_seconds=60)

        decisions = [await limiter.allow("1.2.3.4") for _ in range(6)]

        assert decisions == [True, True, True, True, True, False]
        assert await fake_redis.get("rate_limit:1.2.3.4") == "6"
        assert await fake_redis.ttl("rate_limit:1.2.3.4") > 0
