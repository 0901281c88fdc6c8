"""Metrics client with exposition-format fallback."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from libs.common.exceptions import ConfigurationError
from libs.telemetry.config import DEFAULT_METRIC_NAME_MAP, validate_metric_name_map
from libs.telemetry.exposition import ExpositionParser, sample_value
from libs.telemetry.instrumentation import telemetry_client_metrics_fallback_total
from libs.telemetry.models import ExpositionTable, SystemMetrics
from libs.telemetry.transport import Transport

logger = logging.getLogger(__name__)

METRICS_PATH = "/metrics"

# Fields left as None (rather than 0) when their metric is absent
OPTIONAL_FIELDS = frozenset({"memory_usage"})


def project_metrics(
    table: ExpositionTable,
    name_map: Mapping[str, str] = DEFAULT_METRIC_NAME_MAP,
) -> SystemMetrics:
    """Project an exposition table onto SystemMetrics.

    Args:
        table: Parsed exposition samples
        name_map: SystemMetrics field -> exposition metric name

    Returns:
        SystemMetrics with each field taken from its mapped sample. Absent (or
        NaN) samples give 0, or None for optional fields. The table itself is
        attached as ``exposition``.
    """
    values: dict[str, float | None] = {}
    for field, metric_name in name_map.items():
        value = sample_value(table, metric_name)
        if value is None and field not in OPTIONAL_FIELDS:
            value = 0.0
        values[field] = value
    return SystemMetrics.model_validate({**values, "exposition": table})


class MetricsClient:
    """Fetch SystemMetrics, preferring the structured JSON endpoint.

    If the JSON request fails for any reason, the same endpoint is requested
    as exposition text and projected through ``name_map``. When both fail,
    the JSON error is raised because the structured endpoint is the primary
    source.

    Args:
        transport: Transport used for both requests (each retried on its own)
        name_map: Overrides for the SystemMetrics field -> metric name map
        parser: Exposition parser (a fresh ExpositionParser by default)

    Example:
        >>> client = MetricsClient(transport, name_map={"uptime": "ruinos_uptime_seconds"})
        >>> metrics = await client.get_metrics()
        >>> metrics.exposition is None  # True when the JSON endpoint answered
    """

    def __init__(
        self,
        transport: Transport,
        name_map: Mapping[str, str] | None = None,
        parser: ExpositionParser | None = None,
    ) -> None:
        self.transport = transport
        try:
            self.name_map = validate_metric_name_map(dict(name_map or {}))
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        self.parser = parser or ExpositionParser()

    async def get_metrics(self) -> SystemMetrics:
        """Return current SystemMetrics.

        Raises:
            ApiError: The structured endpoint's error, when the text fallback
                fails as well
        """
        try:
            return await self.transport.get_model(METRICS_PATH, SystemMetrics)
        except Exception as primary_error:
            logger.warning(
                "Structured metrics unavailable, falling back to exposition text: %s",
                primary_error,
            )
            try:
                text = await self.transport.get_text(METRICS_PATH)
                table = self.parser.parse(text)
            except Exception as fallback_error:
                telemetry_client_metrics_fallback_total.labels(outcome="failure").inc()
                logger.warning(
                    "Exposition fallback failed: %s",
                    fallback_error,
                    extra={"primary_error": str(primary_error)},
                )
                raise primary_error

            telemetry_client_metrics_fallback_total.labels(outcome="success").inc()
            return project_metrics(table, self.name_map)

    async def get_exposition(self) -> ExpositionTable:
        """Fetch and parse the exposition text directly."""
        return self.parser.parse(await self.transport.get_text(METRICS_PATH))
