"""Structured JSON logging with trace ID propagation.

Usage:
    from libs.common.logging import configure_logging, LogContext
    configure_logging(service_name="telemetry_client", log_level="INFO")

    with LogContext():
        report = await client.get_health_with_details()
"""

from libs.common.logging.config import (
    TraceIDFilter,
    configure_logging,
    get_logger,
    log_with_context,
)
from libs.common.logging.context import (
    TRACE_ID_HEADER,
    LogContext,
    clear_trace_id,
    generate_trace_id,
    get_or_create_trace_id,
    get_trace_id,
    set_trace_id,
)
from libs.common.logging.formatter import JSONFormatter
from libs.common.logging.http_client import TracedHTTPXClient, get_traced_client

__all__ = [
    # Configuration
    "configure_logging",
    "get_logger",
    "log_with_context",
    "TraceIDFilter",
    # Trace ID management
    "generate_trace_id",
    "get_trace_id",
    "set_trace_id",
    "clear_trace_id",
    "get_or_create_trace_id",
    "LogContext",
    "TRACE_ID_HEADER",
    # HTTP
    "TracedHTTPXClient",
    "get_traced_client",
    # Formatter
    "JSONFormatter",
]
