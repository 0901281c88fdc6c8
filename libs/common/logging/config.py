"""Logging setup for applications embedding the telemetry client.

Example:
    >>> from libs.common.logging.config import configure_logging
    >>> configure_logging(service_name="ops_dashboard", log_level="DEBUG")
    >>> logging.getLogger("libs.telemetry.retry").warning("Retrying", extra={"attempt": 2})
"""

import logging
import sys
from typing import IO, Optional

from libs.common.logging.context import get_trace_id
from libs.common.logging.formatter import JSONFormatter

# httpx and httpcore log every request at INFO/DEBUG; Transport already logs
# each request with its latency
NOISY_LOGGERS = ("httpx", "httpcore")


class TraceIDFilter(logging.Filter):
    """Stamp the current trace ID onto every record passing the handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = get_trace_id()
        return True


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    include_context: bool = True,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """Install JSON logging on the root logger.

    Replaces any existing root handlers with a single handler using
    JSONFormatter and TraceIDFilter, and caps the HTTP library loggers at
    WARNING. Call once at process startup.

    Args:
        service_name: Value for the ``service`` field of every record
        log_level: Level name, case-insensitive (e.g. ``settings.log_level``)
        include_context: Whether extra fields are emitted under ``context``
        stream: Output stream; stdout when None

    Returns:
        The configured root logger

    Raises:
        ValueError: If log_level is not a known level name
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter(service_name=service_name, include_context=include_context))
    handler.addFilter(TraceIDFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return root_logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context_fields: object,
) -> None:
    """Log ``message`` with ``context_fields`` under the record's ``context`` key.

    Example:
        >>> log_with_context(logger, "WARNING", "Sub-fetch failed", endpoint="/health/ready")
    """
    logger.log(logging.getLevelName(level.upper()), message, extra={"context": context_fields})
