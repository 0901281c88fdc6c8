"""Telemetry client facade.

Builds the transport, retry policy, metrics client and aggregator from one
TelemetrySettings. Construct one per remote service and pass it to whatever
needs it; nothing here is a process-wide singleton.

Example:
    >>> settings = TelemetrySettings(base_url="https://ops.example.com/api")
    >>> async with TelemetryClient(settings) as client:
    ...     report = await client.get_health_with_details()
    ...     if report.has_errors:
    ...         print(report.partial_failure_message())
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from libs.telemetry.aggregator import HealthAggregator
from libs.telemetry.config import RetryConfig, TelemetrySettings
from libs.telemetry.metrics_client import MetricsClient
from libs.telemetry.models import (
    AggregatedReport,
    ExpositionTable,
    HealthCheckResult,
    ProbeStatus,
    SystemMetrics,
)
from libs.telemetry.monitor import HealthMonitor
from libs.telemetry.retry import RetryPolicy, SleepFunc
from libs.telemetry.transport import TokenProvider, Transport

logger = logging.getLogger(__name__)


class TelemetryClient:
    """Resilient client for a service's health and metrics endpoints.

    Args:
        settings: Client settings (loaded from the environment when None)
        token_provider: Supplies the bearer token per request. Defaults to
            the static ``settings.api_token``.
        http_client: Pre-built httpx client, mainly for tests
        sleep: Backoff sleep override, mainly for tests
    """

    def __init__(
        self,
        settings: TelemetrySettings | None = None,
        *,
        token_provider: TokenProvider | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: SleepFunc | None = None,
    ) -> None:
        self.settings = settings or TelemetrySettings()
        self.retry_config: RetryConfig = self.settings.retry_config()
        self.retry_policy = RetryPolicy(self.retry_config, sleep=sleep)

        if token_provider is None and self.settings.api_token is not None:
            token = self.settings.api_token.get_secret_value()
            token_provider = lambda: token  # noqa: E731

        self.transport = Transport(
            self.settings.base_url,
            retry_policy=self.retry_policy,
            timeout_seconds=self.settings.timeout_seconds,
            token_provider=token_provider,
            client=http_client,
        )
        self.metrics_client = MetricsClient(self.transport, name_map=self.settings.metric_name_map)
        self.aggregator = HealthAggregator(self.transport, self.metrics_client)
        logger.info(
            "Initialized telemetry client",
            extra={
                "base_url": self.settings.base_url,
                "max_retries": self.retry_config.max_retries,
            },
        )

    async def __aenter__(self) -> TelemetryClient:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    async def get_health(self) -> HealthCheckResult:
        return await self.aggregator.get_health()

    async def get_detailed_health(self) -> HealthCheckResult:
        return await self.aggregator.get_detailed_health()

    async def get_readiness(self) -> ProbeStatus:
        return await self.aggregator.get_readiness()

    async def get_liveness(self) -> ProbeStatus:
        return await self.aggregator.get_liveness()

    async def get_metrics(self) -> SystemMetrics:
        return await self.metrics_client.get_metrics()

    async def get_exposition(self) -> ExpositionTable:
        return await self.metrics_client.get_exposition()

    async def get_health_with_details(self) -> AggregatedReport:
        """Composite report; never raises for upstream failures."""
        return await self.aggregator.get_health_with_details()

    def create_monitor(self, **kwargs: Any) -> HealthMonitor:
        """HealthMonitor over this client, using the configured interval and history size."""
        kwargs.setdefault("refresh_interval", self.settings.poll_interval_seconds)
        kwargs.setdefault("history_size", self.settings.history_size)
        return HealthMonitor(self.aggregator, **kwargs)

    async def close(self) -> None:
        await self.transport.close()
