"""Counting store adapters.

Storage backends for window counters and block markers, behind a small
interface so the decision engine runs unchanged on an in-memory store
(single process) or on Redis (shared across processes).
"""

from ratelimiter.adapters.store.base import AbstractCountingStore
from ratelimiter.adapters.store.factory import create_counting_store
from ratelimiter.adapters.store.in_memory import InMemoryCountingStore
from ratelimiter.adapters.store.redis_store import RedisCountingStore

__all__ = [
    "AbstractCountingStore",
    "InMemoryCountingStore",
    "RedisCountingStore",
    "create_counting_store",
]
