"""JSON log formatter.

Each record becomes one JSON object per line, for example::

    {
        "timestamp": "2026-10-18T09:12:03.511Z",
        "level": "WARNING",
        "service": "telemetry_client",
        "trace_id": "0b7c...",
        "message": "Retrying GET /health in 2.00s",
        "context": {"attempt": 2, "reason": "http_5xx"},
        "source": {"file": ".../retry.py", "line": 97, "function": "before_sleep"}
    }

Bearer tokens never reach the output: credential-named context keys are
masked and ``Bearer <token>`` fragments in messages and string values are
replaced.
"""

import json
import logging
import re
import traceback
from datetime import UTC, datetime
from types import TracebackType
from typing import Any

BEARER_PATTERN = re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+", re.IGNORECASE)
REDACTED = "***"
SENSITIVE_KEYS = frozenset({"authorization", "api_token", "token", "password", "secret"})

# Set on every LogRecord by logging itself; anything else came in through ``extra=``
_RECORD_ATTRIBUTES = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
    "trace_id",
    "context",
}

# Attributes of ApiError-like exceptions copied into the ``exception`` block
_ERROR_DETAIL_ATTRS = ("code", "status_code", "endpoint", "is_network_error")


def redact(value: Any) -> Any:
    """Mask bearer tokens in ``value``, recursing into dicts and lists."""
    if isinstance(value, str):
        return BEARER_PATTERN.sub(rf"\g<1>{REDACTED}", value)
    if isinstance(value, dict):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_KEYS else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON documents.

    Attributes:
        service_name: Value of the ``service`` field on every record
        include_context: Whether ``extra`` fields are emitted under ``context``

    Example:
        >>> handler = logging.StreamHandler()
        >>> handler.setFormatter(JSONFormatter(service_name="telemetry_client"))
        >>> logger.warning("Sub-fetch failed", extra={"endpoint": "/health/ready"})
    """

    def __init__(
        self, service_name: str, include_context: bool = True, *args: Any, **kwargs: Any
    ) -> None:
        super().__init__(*args, **kwargs)
        self.service_name = service_name
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self._format_timestamp(record.created),
            "level": record.levelname,
            "service": self.service_name,
            "trace_id": getattr(record, "trace_id", None),
            "message": redact(record.getMessage()),
        }

        if self.include_context:
            context = self._extract_context(record)
            if context:
                entry["context"] = redact(context)

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self._describe_exception(record.exc_info)

        entry["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        return json.dumps(entry, default=str)

    def _format_timestamp(self, created: float) -> str:
        """ISO 8601 UTC with millisecond precision."""
        return datetime.fromtimestamp(created, tz=UTC).isoformat(timespec="milliseconds")[:-6] + "Z"

    def _extract_context(self, record: logging.LogRecord) -> dict[str, Any] | None:
        """Return ``record.context`` if given, else every field passed via ``extra``."""
        context = getattr(record, "context", None)
        if isinstance(context, dict) and context:
            return dict(context)

        extra = {
            key: value for key, value in record.__dict__.items() if key not in _RECORD_ATTRIBUTES
        }
        return extra or None

    def _describe_exception(
        self,
        exc_info: tuple[type[BaseException] | None, BaseException | None, TracebackType | None],
    ) -> dict[str, Any]:
        exc_type, exc_value, _ = exc_info
        described: dict[str, Any] = {
            "type": exc_type.__name__ if exc_type else None,
            "message": redact(str(exc_value)),
            "traceback": redact("".join(traceback.format_exception(*exc_info))),
        }
        for attr in _ERROR_DETAIL_ATTRS:
            if hasattr(exc_value, attr):
                described[attr] = getattr(exc_value, attr)
        return described
