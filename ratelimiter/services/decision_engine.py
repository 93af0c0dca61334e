"""Rate decision engine.

Turns "a request arrived for identity X" into an allow/deny decision and
drives the block lifecycle on the counting store:

- Open: no counter, no block marker
- Counting: counter armed for a one-second window, count <= limit
- Blocked: marker set for the class block duration, counter cleared

A blocked identity is denied without touching its counter, so a sustained
flood neither extends the block nor grows the counter. When the marker
lapses the identity is Open again and counting restarts from zero.

The engine holds no mutable state of its own; all of it lives in the store,
so one instance can serve any number of concurrent tasks.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable

from ratelimiter.adapters.store.base import AbstractCountingStore
from ratelimiter.core.config import LimiterSettings
from ratelimiter.core.errors import (
    ConfigurationAppError,
    StoreAppError,
    StoreInconsistentResultError,
    StoreUnavailableError,
    ValidationAppError,
)

logger = logging.getLogger(__name__)

# Counting granularity; only block durations are configurable.
WINDOW_SECONDS = 1

BLOCKED_KEY_PREFIX = "blocked_"


class IdentityKind(str, Enum):
    """Disjoint identity classes, each with its own key namespace."""

    ADDRESS = "address"
    CREDENTIAL = "credential"

    @property
    def key_prefix(self) -> str:
        return f"{self.value}_"


def hash_identifier(identifier: str) -> str:
    """Hash an identifier for logging without exposing credentials."""
    return hashlib.sha256(identifier.encode()).hexdigest()[:16]


@dataclass(frozen=True)
class LimiterConfig:
    """Immutable limits for the engine.

    Attributes:
        max_per_address: Requests allowed per window for an address.
        max_per_credential: Requests allowed per window for a credential.
        block_duration_address: Lockout in seconds once an address exceeds its limit.
        block_duration_credential: Lockout in seconds once a credential exceeds its limit.
        credential_header_name: Header the HTTP layer reads the credential from.

    Raises:
        ConfigurationAppError: If a limit or duration is not a positive integer,
            or the header name is empty.
    """

    max_per_address: int
    max_per_credential: int
    block_duration_address: int
    block_duration_credential: int
    credential_header_name: str = "API_KEY"

    def __post_init__(self) -> None:
        for field_name in (
            "max_per_address",
            "max_per_credential",
            "block_duration_address",
            "block_duration_credential",
        ):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationAppError(
                    code="invalid_limiter_config",
                    message=f"{field_name} must be a positive integer, got {value!r}",
                    details={"field": field_name},
                )
        if not isinstance(self.credential_header_name, str) or not self.credential_header_name.strip():
            raise ConfigurationAppError(
                code="invalid_limiter_config",
                message="credential_header_name must be a non-empty string",
                details={"field": "credential_header_name"},
            )

    @classmethod
    def from_settings(cls, limiter_settings: LimiterSettings) -> "LimiterConfig":
        return cls(
            max_per_address=limiter_settings.max_requests_per_ip,
            max_per_credential=limiter_settings.max_requests_per_token,
            block_duration_address=limiter_settings.block_duration_ip_seconds,
            block_duration_credential=limiter_settings.block_duration_token_seconds,
            credential_header_name=limiter_settings.token_header_name,
        )

    def limit_for(self, kind: IdentityKind) -> int:
        if kind is IdentityKind.CREDENTIAL:
            return self.max_per_credential
        return self.max_per_address

    def block_duration_for(self, kind: IdentityKind) -> int:
        if kind is IdentityKind.CREDENTIAL:
            return self.block_duration_credential
        return self.block_duration_address


@dataclass(frozen=True)
class Decision:
    """Outcome of one evaluation.

    Attributes:
        allowed: Whether the request may proceed.
        kind: Identity class the request was counted under.
        count: Post-increment window count, or None when an existing block
            short-circuited the evaluation.
        blocked: True when this evaluation imposed a new block.
    """

    allowed: bool
    kind: IdentityKind
    count: int | None = None
    blocked: bool = False


def _unexpected_reply(step: str, value: Any, key_hash: str) -> StoreInconsistentResultError:
    return StoreInconsistentResultError(
        code="store_bad_reply",
        message=f"Rate limit {step} failed: unexpected reply of type {type(value).__name__}",
        details={"step": step, "key_hash": key_hash},
    )


class RateLimiter:
    """Fixed-window-with-lockout decision engine over a counting store."""

    def __init__(
        self,
        config: LimiterConfig,
        store: AbstractCountingStore,
        *,
        store_timeout_seconds: float | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Immutable limits; never reloaded during the engine's lifetime.
            store: Counting store shared by every identity.
            store_timeout_seconds: Default deadline for one evaluation's store
                round trips. None means no deadline.
        """
        self._config = config
        self._store = store
        self._store_timeout_seconds = store_timeout_seconds

    @property
    def config(self) -> LimiterConfig:
        return self._config

    @property
    def store(self) -> AbstractCountingStore:
        return self._store

    async def _call(
        self,
        step: str,
        operation: Awaitable[Any],
        *,
        deadline: float | None,
        key_hash: str,
    ) -> Any:
        """Run one store operation within the remaining deadline.

        Every failure is re-raised as a StoreAppError naming ``step``.
        """
        timeout = None
        if deadline is not None:
            timeout = max(0.0, deadline - asyncio.get_running_loop().time())

        try:
            return await asyncio.wait_for(operation, timeout=timeout)
        except TimeoutError as exc:
            raise StoreUnavailableError(
                code="store_timeout",
                message=f"Rate limit {step} timed out",
                details={"step": step, "key_hash": key_hash, "timeout_seconds": timeout or 0.0},
            ) from exc
        except StoreAppError as exc:
            raise type(exc)(
                code=exc.code,
                message=f"Rate limit {step} failed: {exc.message}",
                details={"step": step, "key_hash": key_hash},
            ) from exc
        except Exception as exc:
            raise StoreUnavailableError(
                code="store_unavailable",
                message=f"Rate limit {step} failed: {exc}",
                details={"step": step, "key_hash": key_hash},
            ) from exc

    async def evaluate(
        self,
        identifier: str,
        is_credential: bool,
        *,
        timeout: float | None = None,
    ) -> Decision:
        """Decide whether one request for ``identifier`` is admitted.

        Args:
            identifier: Client address or credential value.
            is_credential: True when ``identifier`` is a credential.
            timeout: Overall deadline in seconds for the store round trips;
                defaults to the engine's ``store_timeout_seconds``.

        Returns:
            Decision for this request.

        Raises:
            ValidationAppError: If ``identifier`` is empty.
            StoreUnavailableError: If the store could not be reached or timed out.
            StoreInconsistentResultError: If the store replied with an unexpected value.
        """
        if not identifier:
            raise ValidationAppError(
                code="empty_identifier",
                message="identifier must be a non-empty string",
            )

        kind = IdentityKind.CREDENTIAL if is_credential else IdentityKind.ADDRESS
        limit = self._config.limit_for(kind)
        key = kind.key_prefix + identifier
        blocked_key = BLOCKED_KEY_PREFIX + key
        key_hash = hash_identifier(key)

        if timeout is None:
            timeout = self._store_timeout_seconds
        deadline = None
        if timeout is not None:
            deadline = asyncio.get_running_loop().time() + timeout

        try:
            blocked = await self._call(
                "is_blocked",
                self._store.is_blocked(blocked_key),
                deadline=deadline,
                key_hash=key_hash,
            )
            if not isinstance(blocked, bool):
                raise _unexpected_reply("is_blocked", blocked, key_hash)
            if blocked:
                return Decision(allowed=False, kind=kind)

            count = await self._call(
                "increment",
                self._store.increment(key, WINDOW_SECONDS),
                deadline=deadline,
                key_hash=key_hash,
            )
            if isinstance(count, bool) or not isinstance(count, int):
                raise _unexpected_reply("increment", count, key_hash)
            if count <= limit:
                return Decision(allowed=True, kind=kind, count=count)

            block_seconds = self._config.block_duration_for(kind)
            await self._call(
                "block",
                self._store.block(blocked_key, block_seconds),
                deadline=deadline,
                key_hash=key_hash,
            )
        except StoreAppError as exc:
            logger.error(
                "rate_limit.store_error",
                extra={
                    "key_type": kind.value,
                    "key_hash": key_hash,
                    "error_code": exc.code,
                    "step": (exc.details or {}).get("step"),
                },
            )
            raise

        logger.warning(
            "rate_limit.blocked",
            extra={
                "key_type": kind.value,
                "key_hash": key_hash,
                "count": count,
                "limit": limit,
                "block_s": block_seconds,
            },
        )

        try:
            await self._call("reset", self._store.reset(key), deadline=deadline, key_hash=key_hash)
        except StoreAppError as exc:
            # The block already stands; a stale counter only risks an early re-block.
            logger.warning(
                "rate_limit.reset_failed",
                extra={"key_type": kind.value, "key_hash": key_hash, "error_code": exc.code},
            )

        return Decision(allowed=False, kind=kind, count=count, blocked=True)
