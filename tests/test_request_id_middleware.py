from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from ratelimiter.core.app_factory import create_app
from ratelimiter.core.config import LimiterSettings, LogSettings, Settings, StoreSettings


@pytest.fixture
def client(store) -> TestClient:
    settings = Settings(
        limiter=LimiterSettings(max_requests_per_ip=5),
        store=StoreSettings(backend="memory"),
        log=LogSettings(level="WARNING"),
    )
    return TestClient(create_app(settings, store=store))


def test_preserves_incoming_request_id_header(client: TestClient):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client: TestClient):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_request_id_added_to_rate_limited_responses(client: TestClient):
    statuses = set()
    for _ in range(7):
        resp = client.get("/", headers={"X-Request-ID": "flood"})
        statuses.add(resp.status_code)
        assert resp.headers.get("X-Request-ID") == "flood"

    assert 429 in statuses
