"""Value objects for health, readiness, liveness and metrics payloads.

Attributes are snake_case; the remote service speaks camelCase, so fields that
differ carry an alias. Parse with ``Model.model_validate(payload)`` and emit the
wire shape with ``model_dump(by_alias=True)``.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class MetricType(str, Enum):
    """Exposition ``# TYPE`` values."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"
    SUMMARY = "summary"
    UNTYPED = "untyped"


class MetricSample(BaseModel):
    """One data line recovered from the exposition text."""

    name: str
    help: str = ""
    type: MetricType = MetricType.GAUGE
    value: float
    labels: dict[str, str] = Field(default_factory=dict)


# Bare metric name -> most recent sample for that name
ExpositionTable = dict[str, MetricSample]


class SystemMetrics(BaseModel):
    """Service-level counters and gauges.

    Missing numeric fields default to 0. ``exposition`` is only populated when
    the values were projected from the text format.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)  # Forward compatibility

    uptime: float = 0.0  # seconds
    request_count: float = Field(default=0.0, alias="requestCount")
    error_rate: float = Field(default=0.0, alias="errorRate")  # 0..1
    average_response_time: float = Field(default=0.0, alias="averageResponseTime")  # seconds
    active_connections: float = Field(default=0.0, alias="activeConnections")
    memory_usage: float | None = Field(default=None, alias="memoryUsage")
    exposition: dict[str, MetricSample] | None = Field(default=None, alias="prometheus")


class HealthState(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class SubsystemCheck(BaseModel):
    """Status of one backing subsystem (database, kv, ...)."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    status: HealthState
    last_check: int = Field(alias="lastCheck")  # epoch ms
    error: str | None = None
    response_time: float | None = Field(default=None, alias="responseTime")


class HealthCheckResult(BaseModel):
    """Body of ``/health`` and ``/health/detailed``."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    status: HealthState
    timestamp: int  # epoch ms
    version: str
    environment: str
    checks: dict[str, SubsystemCheck] = Field(default_factory=dict)
    metrics: SystemMetrics | None = None


class ProbeStatus(BaseModel):
    """Body of ``/health/ready`` and ``/health/live``."""

    model_config = ConfigDict(extra="allow")

    status: str
    timestamp: int  # epoch ms


class EndpointError(BaseModel):
    """One failed sub-fetch in an aggregated report."""

    endpoint: str
    error: str


class AggregatedReport(BaseModel):
    """Composite of the four health signals.

    Every signal field is always populated, either with the fetched value or
    with its fallback. ``errors`` holds one entry per failed sub-fetch, in the
    order the fetches were issued.
    """

    health: HealthCheckResult
    readiness: ProbeStatus
    liveness: ProbeStatus
    metrics: SystemMetrics
    errors: list[EndpointError] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def failed_endpoints(self) -> list[str]:
        return [e.endpoint for e in self.errors]

    def partial_failure_message(self) -> str | None:
        """``"Partial failure: /health, /metrics"``, or None when nothing failed."""
        if not self.errors:
            return None
        return f"Partial failure: {', '.join(self.failed_endpoints)}"
