"""Redis-backed counting store.

Shared by every process and every engine instance, so limits hold across
multiple workers and hosts. The increment runs as one server-side Lua
script: INCR and the first-time PEXPIRE cannot be split by a concurrent
caller or by a cancelled client.
"""

from __future__ import annotations

import logging

from redis.asyncio import Redis
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    RedisError,
    ResponseError,
    TimeoutError as RedisTimeoutError,
)

from ratelimiter.adapters.store.base import BLOCKED_VALUE, AbstractCountingStore
from ratelimiter.core.config import RedisSettings
from ratelimiter.core.errors import (
    ConfigurationAppError,
    StoreAppError,
    StoreInconsistentResultError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

# KEYS[1] counter key, ARGV[1] window in milliseconds.
# A counter without TTL (PTTL == -1) is re-armed so it can never live forever.
INCREMENT_WITH_EXPIRY_LUA = """
local count = redis.call('INCR', KEYS[1])
if count == 1 or redis.call('PTTL', KEYS[1]) == -1 then
    redis.call('PEXPIRE', KEYS[1], ARGV[1])
end
return count
"""


def _translate_error(operation: str, exc: RedisError) -> StoreAppError:
    """Map a redis-py exception to the store error taxonomy."""

    if isinstance(exc, (RedisConnectionError, RedisTimeoutError)):
        return StoreUnavailableError(
            code="store_unavailable",
            message=f"Redis {operation} failed: {exc}",
            details={"backend": "redis"},
        )
    if isinstance(exc, ResponseError):
        return StoreInconsistentResultError(
            code="store_bad_reply",
            message=f"Redis rejected {operation}: {exc}",
            details={"backend": "redis"},
        )
    return StoreUnavailableError(
        code="store_unavailable",
        message=f"Redis {operation} failed: {exc}",
        details={"backend": "redis"},
    )


def parse_redis_addr(addr: str) -> tuple[str, int]:
    """Split a ``host:port`` address.

    Raises:
        ConfigurationAppError: If the address is not ``host:port``.
    """

    host, sep, port = addr.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ConfigurationAppError(
            code="invalid_redis_addr",
            message=f"REDIS_ADDR must be host:port, got {addr!r}",
            details={"field": "redis.addr"},
        )
    return host, int(port)


class RedisCountingStore(AbstractCountingStore):
    """Counting store on top of ``redis.asyncio``."""

    def __init__(self, client: Redis) -> None:
        """Wrap an existing client.

        The client must be created with ``decode_responses=True``.
        """
        self._client = client
        self._increment_script = client.register_script(INCREMENT_WITH_EXPIRY_LUA)

    @classmethod
    def from_settings(cls, redis_settings: RedisSettings) -> "RedisCountingStore":
        host, port = parse_redis_addr(redis_settings.addr)
        client = Redis(
            host=host,
            port=port,
            db=redis_settings.db,
            password=redis_settings.password,
            socket_timeout=redis_settings.socket_timeout_seconds,
            socket_connect_timeout=redis_settings.socket_timeout_seconds,
            decode_responses=True,
        )
        return cls(client)

    async def increment(self, key: str, window_seconds: int) -> int:
        try:
            reply = await self._increment_script(keys=[key], args=[window_seconds * 1000])
        except RedisError as exc:
            raise _translate_error("increment", exc) from exc

        if isinstance(reply, bool) or not isinstance(reply, int):
            raise StoreInconsistentResultError(
                code="store_bad_reply",
                message=f"Increment script returned {type(reply).__name__}, expected int",
                details={"backend": "redis"},
            )
        return reply

    async def is_blocked(self, key: str) -> bool:
        try:
            value = await self._client.get(key)
        except RedisError as exc:
            raise _translate_error("get", exc) from exc

        if value is None:
            return False
        if value != BLOCKED_VALUE:
            raise StoreInconsistentResultError(
                code="store_unexpected_marker",
                message="Block marker key holds an unexpected value",
                details={"backend": "redis"},
            )
        return True

    async def block(self, key: str, duration_seconds: int) -> None:
        try:
            await self._client.set(key, BLOCKED_VALUE, ex=duration_seconds)
        except RedisError as exc:
            raise _translate_error("set", exc) from exc

    async def reset(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except RedisError as exc:
            raise _translate_error("delete", exc) from exc

    async def ping(self) -> None:
        try:
            await self._client.ping()
        except RedisError as exc:
            raise _translate_error("ping", exc) from exc

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("store.closed", extra={"backend": "redis"})
