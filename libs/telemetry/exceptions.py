"""
Errors raised by the telemetry client.

Transport converts every httpx failure into an ApiError so retry
classification, logging and the aggregated report all see one shape.
"""

from __future__ import annotations

from libs.common.exceptions import ConfigurationError, TelemetryClientError

__all__ = ["ApiError", "ConfigurationError", "TelemetryClientError"]


class ApiError(TelemetryClientError):
    """
    Normalized failure of a request to the remote service.

    Attributes:
        error: Short error category, from the response body when it has one
        message: Human-readable detail; also ``str(err)``
        code: Machine code (http_error, timeout, connect_error, network_error,
            request_error, invalid_payload)
        status_code: HTTP status when the server answered, else None
        endpoint: Request path, when known
        is_network_error: True when no HTTP response was received because the
            connection failed, timed out or the host did not resolve

    Example:
        >>> try:
        ...     await transport.get_json("/health/ready")
        ... except ApiError as e:
        ...     if e.status_code == 503:
        ...         logger.warning(f"Not ready: {e}")
    """

    def __init__(
        self,
        message: str,
        *,
        error: str = "API Error",
        code: str | None = None,
        status_code: int | None = None,
        endpoint: str | None = None,
        is_network_error: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error = error
        self.code = code
        self.status_code = status_code
        self.endpoint = endpoint
        self.is_network_error = is_network_error

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"ApiError(message={self.message!r}, error={self.error!r}, code={self.code!r}, "
            f"status_code={self.status_code!r}, endpoint={self.endpoint!r})"
        )
