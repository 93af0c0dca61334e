"""Load generator for a running limiter.

Fires N requests with bounded concurrency and reports how many were
admitted, how many got 429, and latency figures.

    ratelimiter-benchmark --url http://localhost:8080/ -n 100 -c 10 --token
"""

from __future__ import annotations

import argparse
import asyncio
import os
import time
from dataclasses import dataclass, field

import httpx


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class BenchmarkOptions:
    url: str
    num_requests: int
    concurrency: int
    use_token: bool = False
    token_value: str = "my-token-123"
    token_header: str = "API_KEY"
    timeout_seconds: float = 10.0


@dataclass
class BenchmarkResults:
    total_requests: int
    success: int = 0
    rate_limited: int = 0
    other_errors: int = 0
    total_duration: float = 0.0
    latencies: list[float] = field(default_factory=list)

    @property
    def min_latency(self) -> float:
        return min(self.latencies) if self.latencies else 0.0

    @property
    def max_latency(self) -> float:
        return max(self.latencies) if self.latencies else 0.0

    @property
    def avg_latency(self) -> float:
        return sum(self.latencies) / len(self.latencies) if self.latencies else 0.0

    @property
    def requests_per_second(self) -> float:
        return self.total_requests / self.total_duration if self.total_duration > 0 else 0.0

    def record(self, status_code: int | None, latency: float) -> None:
        self.latencies.append(latency)
        if status_code is not None and 200 <= status_code < 300:
            self.success += 1
        elif status_code == 429:
            self.rate_limited += 1
        else:
            self.other_errors += 1


async def run_benchmark(
    options: BenchmarkOptions,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BenchmarkResults:
    """Send ``options.num_requests`` requests and collect results.

    Args:
        options: What to hit and how hard.
        transport: Optional httpx transport (tests pass an ASGI/mock transport).
    """
    results = BenchmarkResults(total_requests=options.num_requests)
    semaphore = asyncio.Semaphore(max(1, options.concurrency))
    headers = {options.token_header: options.token_value} if options.use_token else {}

    async with httpx.AsyncClient(timeout=options.timeout_seconds, transport=transport) as client:

        async def one_request() -> None:
            async with semaphore:
                start = time.perf_counter()
                try:
                    response = await client.get(options.url, headers=headers)
                    status_code: int | None = response.status_code
                except httpx.HTTPError:
                    status_code = None
                results.record(status_code, time.perf_counter() - start)

        started = time.perf_counter()
        await asyncio.gather(*(one_request() for _ in range(options.num_requests)))
        results.total_duration = time.perf_counter() - started

    return results


def format_results(results: BenchmarkResults) -> str:
    lines = [
        "Benchmark results",
        f"  total requests:     {results.total_requests}",
        f"  successful (2xx):   {results.success}",
        f"  rate limited (429): {results.rate_limited}",
        f"  other errors:       {results.other_errors}",
        f"  total time:         {results.total_duration:.3f}s",
        f"  requests/second:    {results.requests_per_second:.2f}",
        f"  latency min/avg/max: {results.min_latency * 1000:.2f}/"
        f"{results.avg_latency * 1000:.2f}/{results.max_latency * 1000:.2f} ms",
    ]
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate load against the rate limiter.")
    parser.add_argument("--url", default=os.getenv("API_URL", "http://localhost:8080/"))
    parser.add_argument("-n", type=int, dest="num_requests", default=_env_int("BENCHMARK_NUM_REQUESTS", 100))
    parser.add_argument("-c", type=int, dest="concurrency", default=_env_int("BENCHMARK_CONCURRENCY", 10))
    parser.add_argument("--token", action="store_true", dest="use_token", help="Send the credential header")
    parser.add_argument("--token-value", default=os.getenv("TEST_TOKEN", "my-token-123"))
    parser.add_argument("--token-header", default=os.getenv("TOKEN_HEADER_NAME", "API_KEY"))
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    options = BenchmarkOptions(
        url=args.url,
        num_requests=args.num_requests,
        concurrency=args.concurrency,
        use_token=args.use_token,
        token_value=args.token_value,
        token_header=args.token_header,
    )
    print(f"Benchmarking {options.url}: {options.num_requests} requests, concurrency {options.concurrency}")
    if options.use_token:
        print(f"Using credential header {options.token_header!r}")
    else:
        print("No credential header (per-address limiting)")

    results = asyncio.run(run_benchmark(options))
    print(format_results(results))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
