"""Health aggregation across the four health signals."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from libs.telemetry.instrumentation import telemetry_client_fetch_failures_total
from libs.telemetry.metrics_client import METRICS_PATH, MetricsClient
from libs.telemetry.models import (
    AggregatedReport,
    EndpointError,
    HealthCheckResult,
    HealthState,
    ProbeStatus,
    SubsystemCheck,
    SystemMetrics,
)
from libs.telemetry.transport import Transport

logger = logging.getLogger(__name__)

HEALTH_PATH = "/health"
DETAILED_HEALTH_PATH = "/health/detailed"
READINESS_PATH = "/health/ready"
LIVENESS_PATH = "/health/live"

# Subsystems reported by the remote service; all marked unhealthy in the fallback
FALLBACK_SUBSYSTEMS = ("database", "kv", "r2", "durableObjects", "secrets")
FALLBACK_CHECK_ERROR = "Health check failed"
FALLBACK_UNKNOWN = "unknown"
NOT_READY = "not ready"
NOT_ALIVE = "not alive"


def now_ms() -> int:
    return int(time.time() * 1000)


def fallback_health(timestamp: int) -> HealthCheckResult:
    """Health reported when ``/health`` could not be fetched."""
    return HealthCheckResult(
        status=HealthState.UNHEALTHY,
        timestamp=timestamp,
        version=FALLBACK_UNKNOWN,
        environment=FALLBACK_UNKNOWN,
        checks={
            name: SubsystemCheck(
                status=HealthState.UNHEALTHY,
                last_check=timestamp,
                error=FALLBACK_CHECK_ERROR,
            )
            for name in FALLBACK_SUBSYSTEMS
        },
    )


def fallback_readiness(timestamp: int) -> ProbeStatus:
    return ProbeStatus(status=NOT_READY, timestamp=timestamp)


def fallback_liveness(timestamp: int) -> ProbeStatus:
    return ProbeStatus(status=NOT_ALIVE, timestamp=timestamp)


def fallback_metrics() -> SystemMetrics:
    """Metrics reported when ``/metrics`` could not be fetched: all zero, error rate 1."""
    return SystemMetrics(
        uptime=0.0,
        request_count=0.0,
        error_rate=1.0,
        average_response_time=0.0,
        active_connections=0.0,
    )


class HealthAggregator:
    """Fetch health, readiness, liveness and metrics into one report.

    Each single-signal method raises ApiError on failure.
    ``get_health_with_details`` never does: it substitutes a fallback for
    every signal that failed and lists the failures in ``errors``.

    Args:
        transport: Transport for the health endpoints
        metrics_client: Client used for the metrics signal
        clock: Epoch-milliseconds source for fallback timestamps
    """

    def __init__(
        self,
        transport: Transport,
        metrics_client: MetricsClient,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.transport = transport
        self.metrics_client = metrics_client
        self._clock = clock

    async def get_health(self) -> HealthCheckResult:
        return await self.transport.get_model(HEALTH_PATH, HealthCheckResult)

    async def get_detailed_health(self) -> HealthCheckResult:
        """Health including per-subsystem response times, when the service reports them."""
        return await self.transport.get_model(DETAILED_HEALTH_PATH, HealthCheckResult)

    async def get_readiness(self) -> ProbeStatus:
        return await self.transport.get_model(READINESS_PATH, ProbeStatus)

    async def get_liveness(self) -> ProbeStatus:
        return await self.transport.get_model(LIVENESS_PATH, ProbeStatus)

    async def get_metrics(self) -> SystemMetrics:
        return await self.metrics_client.get_metrics()

    async def get_health_with_details(self) -> AggregatedReport:
        """Fetch all four signals concurrently and combine them.

        The fetches are joined settle-all: one failing never cancels or
        affects the others. Failures are reported in ``errors`` in the order
        the fetches were issued (health, readiness, liveness, metrics).

        Returns:
            AggregatedReport whose four signal fields are always populated
        """
        branches: list[tuple[str, Callable[[], Awaitable[Any]]]] = [
            (HEALTH_PATH, self.get_health),
            (READINESS_PATH, self.get_readiness),
            (LIVENESS_PATH, self.get_liveness),
            (METRICS_PATH, self.get_metrics),
        ]
        results = await asyncio.gather(
            *(fetch() for _, fetch in branches),
            return_exceptions=True,
        )

        errors: list[EndpointError] = []
        values: dict[str, Any] = {}
        for (endpoint, _), result in zip(branches, results, strict=True):
            if isinstance(result, Exception):
                telemetry_client_fetch_failures_total.labels(endpoint=endpoint).inc()
                logger.warning(
                    "Health sub-fetch failed for %s: %s",
                    endpoint,
                    result,
                    extra={"endpoint": endpoint, "error_type": type(result).__name__},
                )
                errors.append(
                    EndpointError(endpoint=endpoint, error=str(result) or type(result).__name__)
                )
            elif isinstance(result, BaseException):
                # Cancellation and interpreter exits are not sub-fetch failures
                raise result
            else:
                values[endpoint] = result

        timestamp = self._clock()
        health = values.get(HEALTH_PATH)
        readiness = values.get(READINESS_PATH)
        liveness = values.get(LIVENESS_PATH)
        metrics = values.get(METRICS_PATH)
        return AggregatedReport(
            health=health if health is not None else fallback_health(timestamp),
            readiness=readiness if readiness is not None else fallback_readiness(timestamp),
            liveness=liveness if liveness is not None else fallback_liveness(timestamp),
            metrics=metrics if metrics is not None else fallback_metrics(),
            errors=errors,
        )
