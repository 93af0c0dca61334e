"""Factory for creating counting store instances."""

from ratelimiter.adapters.store.base import AbstractCountingStore
from ratelimiter.adapters.store.in_memory import InMemoryCountingStore
from ratelimiter.adapters.store.redis_store import RedisCountingStore
from ratelimiter.core.config import Settings
from ratelimiter.core.errors import ConfigurationAppError


def create_counting_store(settings: Settings) -> AbstractCountingStore:
    """Instantiate the counting store selected by ``STORE_BACKEND``.

    Args:
        settings: Loaded application settings.

    Returns:
        AbstractCountingStore: Configured store (not yet pinged).

    Raises:
        ConfigurationAppError: If the backend name is unknown or its settings are invalid.
    """
    backend = settings.store.backend.lower()

    if backend == "redis":
        return RedisCountingStore.from_settings(settings.redis)

    if backend == "memory":
        return InMemoryCountingStore()

    raise ConfigurationAppError(
        code="unknown_store_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: redis, memory",
        details={"field": "store.backend"},
    )
