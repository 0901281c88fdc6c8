"""Common utilities and exceptions."""

from libs.common.exceptions import ConfigurationError, TelemetryClientError

__all__ = [
    "TelemetryClientError",
    "ConfigurationError",
]
