"""Prometheus metrics for the telemetry client itself."""

from __future__ import annotations

from prometheus_client import Counter

telemetry_client_retries_total = Counter(
    "telemetry_client_retries_total",
    "Retries scheduled after a transient failure",
    ["reason"],
)

telemetry_client_metrics_fallback_total = Counter(
    "telemetry_client_metrics_fallback_total",
    "Fallbacks from the JSON metrics endpoint to the exposition text",
    ["outcome"],
)

telemetry_client_fetch_failures_total = Counter(
    "telemetry_client_fetch_failures_total",
    "Sub-fetches replaced by a fallback value in an aggregated report",
    ["endpoint"],
)


__all__ = [
    "telemetry_client_retries_total",
    "telemetry_client_metrics_fallback_total",
    "telemetry_client_fetch_failures_total",
]
