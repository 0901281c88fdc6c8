"""
Exception hierarchy for the telemetry client.

Every error raised by this project derives from TelemetryClientError so callers
can catch the whole family in one place. Package-specific errors (the
normalized HTTP error shape in particular) live next to the code that raises
them and subclass these.
"""


class TelemetryClientError(Exception):
    """
    Base exception for all telemetry client errors.

    Example:
        >>> try:
        ...     report = await client.get_health()
        ... except TelemetryClientError as e:
        ...     logger.error(f"Telemetry error: {e}")
    """

    pass


class ConfigurationError(TelemetryClientError):
    """
    Raised when client configuration is invalid.

    Covers malformed base URLs, negative retry budgets and metric name maps
    that reference unknown SystemMetrics fields.

    Example:
        >>> if not base_url.startswith(("http://", "https://")):
        ...     raise ConfigurationError(f"Invalid base_url: {base_url}")
    """

    pass
