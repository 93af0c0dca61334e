"""Counting store interface.

The decision engine depends on this abstraction (not the concrete backend)
so a single-process deployment can run on the in-memory store and a
multi-process one on Redis without touching the engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

BLOCKED_VALUE = "blocked"


class AbstractCountingStore(ABC):
    """Interface for counting/blocking backends.

    Implementations raise ``StoreUnavailableError`` for transport failures
    and ``StoreInconsistentResultError`` when a reply has an unexpected shape.
    """

    @abstractmethod
    async def increment(self, key: str, window_seconds: int) -> int:
        """Atomically increment the counter at ``key``.

        When the increment creates the key, its expiry is set to
        ``window_seconds`` in the same atomic step.

        Args:
            key: Counter key (e.g. ``address_10.0.0.1``).
            window_seconds: Lifetime of a freshly created counter.

        Returns:
            The post-increment count.
        """
        raise NotImplementedError

    @abstractmethod
    async def is_blocked(self, key: str) -> bool:
        """Return True when a block marker exists at ``key``."""
        raise NotImplementedError

    @abstractmethod
    async def block(self, key: str, duration_seconds: int) -> None:
        """Set the block marker at ``key`` for ``duration_seconds``."""
        raise NotImplementedError

    @abstractmethod
    async def reset(self, key: str) -> None:
        """Delete ``key``. Deleting a missing key is not an error."""
        raise NotImplementedError

    async def ping(self) -> None:
        """Verify the backend is reachable. No-op by default."""

    async def close(self) -> None:
        """Release transport resources. No-op by default."""
