"""Tests for the load generator, driven by an in-process transport."""

import httpx
import pytest

from ratelimiter.tools.benchmark import (
    BenchmarkOptions,
    BenchmarkResults,
    build_parser,
    format_results,
    run_benchmark,
)


def _transport_allowing(limit: int, header: str | None = None) -> httpx.MockTransport:
    seen: dict[str, int] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        identity = request.headers.get(header) if header else None
        identity = identity or "address"
        seen[identity] = seen.get(identity, 0) + 1
        if seen[identity] > limit:
            return httpx.Response(429, text="too many")
        return httpx.Response(200, text="ok")

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_counts_success_and_rate_limited() -> None:
    options = BenchmarkOptions(url="http://limiter.test/", num_requests=20, concurrency=4)

    results = await run_benchmark(options, transport=_transport_allowing(5))

    assert results.success == 5
    assert results.rate_limited == 15
    assert results.other_errors == 0
    assert len(results.latencies) == 20
    assert results.total_duration > 0


@pytest.mark.asyncio
async def test_sends_credential_header_when_requested() -> None:
    options = BenchmarkOptions(
        url="http://limiter.test/",
        num_requests=3,
        concurrency=1,
        use_token=True,
        token_value="abc",
        token_header="API_KEY",
    )
    seen_headers: list[str | None] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen_headers.append(request.headers.get("API_KEY"))
        return httpx.Response(200)

    await run_benchmark(options, transport=httpx.MockTransport(handler))

    assert seen_headers == ["abc", "abc", "abc"]


@pytest.mark.asyncio
async def test_transport_errors_counted_as_other() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    options = BenchmarkOptions(url="http://limiter.test/", num_requests=3, concurrency=2)
    results = await run_benchmark(options, transport=httpx.MockTransport(handler))

    assert results.other_errors == 3
    assert results.success == 0


def test_empty_results_format() -> None:
    text = format_results(BenchmarkResults(total_requests=0))

    assert "total requests:     0" in text
    assert "rate limited (429): 0" in text


def test_parser_defaults_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BENCHMARK_NUM_REQUESTS", "42")
    monkeypatch.setenv("TOKEN_HEADER_NAME", "X-Client-Token")

    args = build_parser().parse_args(["--token"])

    assert args.num_requests == 42
    assert args.token_header == "X-Client-Token"
    assert args.use_token is True
