"""In-memory counting store.

Notes:
- Per-process only: running multiple workers gives each worker its own
  counters, multiplying the effective limit.
- Thread-safe: every operation runs under one lock and never awaits while
  holding it, so increment and expiry-arming happen as a single step.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from ratelimiter.adapters.store.base import BLOCKED_VALUE, AbstractCountingStore
from ratelimiter.core.errors import StoreInconsistentResultError


@dataclass
class _Entry:
    value: int | str
    expires_at: float | None


class InMemoryCountingStore(AbstractCountingStore):
    """Key-value store with per-key expiry, held in a dict.

    Expired entries are dropped lazily when touched and swept on writes.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the store.

        Args:
            clock: Time source returning seconds; injectable for tests.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}

    def _live_entry_locked(self, key: str, now: float) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= now:
            del self._entries[key]
            return None
        return entry

    def _sweep_expired_locked(self, now: float) -> None:
        expired = [
            k for k, e in self._entries.items()
            if e.expires_at is not None and e.expires_at <= now
        ]
        for key in expired:
            del self._entries[key]

    async def increment(self, key: str, window_seconds: int) -> int:
        with self._lock:
            now = self._clock()
            entry = self._live_entry_locked(key, now)
            if entry is None:
                self._sweep_expired_locked(now)
                self._entries[key] = _Entry(value=1, expires_at=now + window_seconds)
                return 1

            if not isinstance(entry.value, int):
                raise StoreInconsistentResultError(
                    code="store_wrong_type",
                    message=f"Key holds a {type(entry.value).__name__}, not a counter",
                )
            entry.value += 1
            return entry.value

    async def is_blocked(self, key: str) -> bool:
        with self._lock:
            entry = self._live_entry_locked(key, self._clock())
            if entry is None:
                return False
            if entry.value != BLOCKED_VALUE:
                raise StoreInconsistentResultError(
                    code="store_unexpected_marker",
                    message="Block marker key holds an unexpected value",
                )
            return True

    async def block(self, key: str, duration_seconds: int) -> None:
        with self._lock:
            now = self._clock()
            self._entries[key] = _Entry(value=BLOCKED_VALUE, expires_at=now + duration_seconds)

    async def reset(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def get(self, key: str) -> int | str | None:
        """Return the live value at ``key`` (inspection helper)."""

        with self._lock:
            entry = self._live_entry_locked(key, self._clock())
            return entry.value if entry else None

    def ttl(self, key: str) -> int | None:
        """Remaining lifetime of ``key`` in whole seconds, rounded up.

        Returns None when the key is absent or has no expiry.
        """

        with self._lock:
            now = self._clock()
            entry = self._live_entry_locked(key, now)
            if entry is None or entry.expires_at is None:
                return None
            return int(math.ceil(entry.expires_at - now))
