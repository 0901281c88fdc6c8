"""Shared fixtures for telemetry client tests.

HTTP is stubbed with MockAsyncClient, which serves queued httpx.Response
objects (or raises queued exceptions) per request path, and backoff sleeps
are recorded instead of awaited.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable, Iterable
from typing import Any

import httpx
import pytest

from libs.telemetry.config import RetryConfig
from libs.telemetry.retry import RetryPolicy
from libs.telemetry.transport import TokenProvider, Transport


class MockAsyncClient:
    """Minimal async stub for httpx.AsyncClient keyed by request path."""

    def __init__(
        self,
        routes: dict[str, Iterable[Any]] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.routes: dict[str, deque[Any]] = {
            path: deque(items) for path, items in (routes or {}).items()
        }
        self.delays = delays or {}
        self.calls: list[tuple[str, str, dict[str, str]]] = []
        self.is_closed = False
        self.in_flight = 0
        self.max_in_flight = 0

    def calls_for(self, path: str) -> list[tuple[str, str, dict[str, str]]]:
        return [call for call in self.calls if call[1] == path]

    async def request(
        self, method: str, url: str, headers: dict[str, str] | None = None
    ) -> httpx.Response:
        self.calls.append((method, url, dict(headers or {})))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delays.get(url, 0.0)
            if delay:
                await asyncio.sleep(delay)
            queue = self.routes.get(url)
            if not queue:
                raise AssertionError(f"No mock responses remaining for {url}")
            item = queue.popleft()
            if isinstance(item, BaseException):
                raise item
            return item
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.is_closed = True


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(float(delay))


def connect_error(path: str) -> httpx.ConnectError:
    return httpx.ConnectError("connection refused", request=httpx.Request("GET", path))


@pytest.fixture()
def sleep_recorder() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def retry_config() -> RetryConfig:
    return RetryConfig(max_retries=3, retry_delay=1.0, backoff_multiplier=2.0)


@pytest.fixture()
def make_transport(
    sleep_recorder: RecordingSleep, retry_config: RetryConfig
) -> Callable[..., tuple[Transport, MockAsyncClient]]:
    """Build a Transport over a MockAsyncClient.

    Usage: ``transport, http = make_transport({"/health": [httpx.Response(200, json=...)]})``
    """

    def factory(
        routes: dict[str, Iterable[Any]] | None = None,
        *,
        delays: dict[str, float] | None = None,
        config: RetryConfig | None = None,
        token_provider: TokenProvider | None = None,
    ) -> tuple[Transport, MockAsyncClient]:
        http = MockAsyncClient(routes, delays=delays)
        transport = Transport(
            "http://svc/api",
            retry_policy=RetryPolicy(config or retry_config, sleep=sleep_recorder),
            token_provider=token_provider,
            client=http,  # type: ignore[arg-type]
        )
        return transport, http

    return factory


@pytest.fixture()
def mock_http() -> Callable[..., MockAsyncClient]:
    def factory(
        routes: dict[str, Iterable[Any]] | None = None,
        delays: dict[str, float] | None = None,
    ) -> MockAsyncClient:
        return MockAsyncClient(routes, delays=delays)

    return factory


@pytest.fixture()
def make_connect_error() -> Callable[[str], httpx.ConnectError]:
    return connect_error


@pytest.fixture()
def health_payload() -> dict[str, Any]:
    return {
        "status": "healthy",
        "timestamp": 1_760_000_000_000,
        "version": "1.4.2",
        "environment": "production",
        "checks": {
            "database": {"status": "healthy", "lastCheck": 1_760_000_000_000},
            "kv": {"status": "healthy", "lastCheck": 1_760_000_000_000},
            "r2": {"status": "degraded", "lastCheck": 1_760_000_000_000, "responseTime": 812.5},
            "durableObjects": {"status": "healthy", "lastCheck": 1_760_000_000_000},
            "secrets": {"status": "healthy", "lastCheck": 1_760_000_000_000},
        },
    }


@pytest.fixture()
def metrics_payload() -> dict[str, Any]:
    return {
        "uptime": 3600.0,
        "requestCount": 1250,
        "errorRate": 0.02,
        "averageResponseTime": 0.085,
        "activeConnections": 7,
        "memoryUsage": 52_428_800,
    }


EXPOSITION_TEXT = """\
# HELP process_uptime_seconds Process uptime
# TYPE process_uptime_seconds counter
process_uptime_seconds 7200
# HELP http_requests_total Total requests
# TYPE http_requests_total counter
http_requests_total{method="GET",status="200"} 4821
# HELP http_request_error_rate Share of failed requests
# TYPE http_request_error_rate gauge
http_request_error_rate 0.015
# TYPE http_request_duration_seconds gauge
http_request_duration_seconds 0.042
http_active_connections 12
process_memory_usage_bytes 104857600
"""


@pytest.fixture()
def exposition_text() -> str:
    return EXPOSITION_TEXT
