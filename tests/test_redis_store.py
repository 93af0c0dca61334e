"""Unit tests for the Redis counting store (client mocked).

The Lua script itself runs in test_redis_store_fake_server.py.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError, TimeoutError as RedisTimeoutError

from ratelimiter.adapters.store.redis_store import (
    INCREMENT_WITH_EXPIRY_LUA,
    RedisCountingStore,
    parse_redis_addr,
)
from ratelimiter.core.config import RedisSettings
from ratelimiter.core.errors import (
    ConfigurationAppError,
    StoreInconsistentResultError,
    StoreUnavailableError,
)


@pytest.fixture
def script() -> AsyncMock:
    return AsyncMock(return_value=1)


@pytest.fixture
def client(script: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.register_script.return_value = script
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def redis_store(client: MagicMock) -> RedisCountingStore:
    return RedisCountingStore(client)


def test_registers_increment_script(client: MagicMock, redis_store) -> None:
    client.register_script.assert_called_once_with(INCREMENT_WITH_EXPIRY_LUA)


class TestIncrement:
    @pytest.mark.asyncio
    async def test_passes_window_in_milliseconds(self, redis_store, script) -> None:
        script.return_value = 3

        assert await redis_store.increment("address_10.0.0.1", 1) == 3
        script.assert_awaited_once_with(keys=["address_10.0.0.1"], args=[1000])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exc", [RedisConnectionError("refused"), RedisTimeoutError("slow")])
    async def test_transport_errors_are_unavailable(self, redis_store, script, exc) -> None:
        script.side_effect = exc

        with pytest.raises(StoreUnavailableError) as exc_info:
            await redis_store.increment("k", 1)

        assert exc_info.value.__cause__ is exc
        assert exc_info.value.details["backend"] == "redis"

    @pytest.mark.asyncio
    async def test_response_error_is_inconsistent(self, redis_store, script) -> None:
        script.side_effect = ResponseError("WRONGTYPE Operation against a key holding the wrong kind of value")

        with pytest.raises(StoreInconsistentResultError):
            await redis_store.increment("k", 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ["3", None, True, 2.0])
    async def test_non_integer_reply_is_inconsistent(self, redis_store, script, reply) -> None:
        script.return_value = reply

        with pytest.raises(StoreInconsistentResultError):
            await redis_store.increment("k", 1)


class TestBlockMarker:
    @pytest.mark.asyncio
    async def test_absent_marker_is_not_blocked(self, redis_store, client) -> None:
        assert await redis_store.is_blocked("blocked_address_x") is False
        client.get.assert_awaited_once_with("blocked_address_x")

    @pytest.mark.asyncio
    async def test_marker_present(self, redis_store, client) -> None:
        client.get.return_value = "blocked"

        assert await redis_store.is_blocked("blocked_address_x") is True

    @pytest.mark.asyncio
    async def test_unexpected_marker_value_is_inconsistent(self, redis_store, client) -> None:
        client.get.return_value = "7"

        with pytest.raises(StoreInconsistentResultError):
            await redis_store.is_blocked("blocked_address_x")

    @pytest.mark.asyncio
    async def test_block_sets_value_with_expiry(self, redis_store, client) -> None:
        await redis_store.block("blocked_address_x", 300)

        client.set.assert_awaited_once_with("blocked_address_x", "blocked", ex=300)

    @pytest.mark.asyncio
    async def test_get_failure_is_unavailable(self, redis_store, client) -> None:
        client.get.side_effect = RedisConnectionError("reset by peer")

        with pytest.raises(StoreUnavailableError):
            await redis_store.is_blocked("blocked_address_x")


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_reset_deletes_key(self, redis_store, client) -> None:
        await redis_store.reset("address_x")
        client.delete.assert_awaited_once_with("address_x")

    @pytest.mark.asyncio
    async def test_ping_failure_is_unavailable(self, redis_store, client) -> None:
        client.ping.side_effect = RedisConnectionError("refused")

        with pytest.raises(StoreUnavailableError):
            await redis_store.ping()

    @pytest.mark.asyncio
    async def test_close_releases_client(self, redis_store, client) -> None:
        await redis_store.close()
        client.aclose.assert_awaited_once()


class TestFromSettings:
    def test_parse_addr(self) -> None:
        assert parse_redis_addr("redis:6379") == ("redis", 6379)
        assert parse_redis_addr("localhost:6380") == ("localhost", 6380)

    @pytest.mark.parametrize("addr", ["localhost", ":6379", "redis:port", ""])
    def test_parse_addr_rejects_malformed(self, addr: str) -> None:
        with pytest.raises(ConfigurationAppError):
            parse_redis_addr(addr)

    def test_builds_client_from_settings(self) -> None:
        store = RedisCountingStore.from_settings(RedisSettings(addr="redis:6380", db=2))

        kwargs = store._client.connection_pool.connection_kwargs
        assert kwargs["host"] == "redis"
        assert kwargs["port"] == 6380
        assert kwargs["db"] == 2
        assert kwargs["decode_responses"] is True
