"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any ratelimiter import so settings
never pick up a developer's .env file or try to reach Redis.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from ratelimiter.adapters.store.in_memory import InMemoryCountingStore
from ratelimiter.services.decision_engine import LimiterConfig, RateLimiter


class FakeTime:
    """Deterministic clock used to test expiration logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def time(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def store(fake_time: FakeTime) -> InMemoryCountingStore:
    return InMemoryCountingStore(clock=fake_time.time)


@pytest.fixture
def limiter_config() -> LimiterConfig:
    """Limit 3 and 5s lockout for both classes."""
    return LimiterConfig(
        max_per_address=3,
        max_per_credential=3,
        block_duration_address=5,
        block_duration_credential=5,
        credential_header_name="API_KEY",
    )


@pytest.fixture
def limiter(limiter_config: LimiterConfig, store: InMemoryCountingStore) -> RateLimiter:
    return RateLimiter(limiter_config, store)
