"""Resilient telemetry client.

Fetches health, readiness, liveness and metrics from a remote service,
retrying transient failures with exponential backoff, falling back to the
text exposition format for metrics, and combining all four signals into a
report that is always complete.
"""

from libs.telemetry.aggregator import HealthAggregator
from libs.telemetry.client import TelemetryClient
from libs.telemetry.config import DEFAULT_METRIC_NAME_MAP, RetryConfig, TelemetrySettings
from libs.telemetry.exceptions import ApiError, ConfigurationError, TelemetryClientError
from libs.telemetry.exposition import ExpositionParser, parse_exposition
from libs.telemetry.metrics_client import MetricsClient, project_metrics
from libs.telemetry.models import (
    AggregatedReport,
    EndpointError,
    ExpositionTable,
    HealthCheckResult,
    HealthState,
    MetricSample,
    MetricType,
    ProbeStatus,
    SubsystemCheck,
    SystemMetrics,
)
from libs.telemetry.monitor import HealthMonitor, HealthMonitorState
from libs.telemetry.retry import RetryPolicy, is_retryable_error
from libs.telemetry.transport import Transport

__all__ = [
    # Client
    "TelemetryClient",
    "TelemetrySettings",
    "RetryConfig",
    "DEFAULT_METRIC_NAME_MAP",
    # Components
    "RetryPolicy",
    "is_retryable_error",
    "ExpositionParser",
    "parse_exposition",
    "Transport",
    "MetricsClient",
    "project_metrics",
    "HealthAggregator",
    "HealthMonitor",
    "HealthMonitorState",
    # Models
    "AggregatedReport",
    "EndpointError",
    "ExpositionTable",
    "HealthCheckResult",
    "HealthState",
    "MetricSample",
    "MetricType",
    "ProbeStatus",
    "SubsystemCheck",
    "SystemMetrics",
    # Errors
    "ApiError",
    "ConfigurationError",
    "TelemetryClientError",
]
