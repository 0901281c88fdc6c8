"""
Telemetry client configuration.

RetryConfig is the immutable retry budget a client holds for its lifetime.
TelemetrySettings loads everything else from ``TELEMETRY_*`` environment
variables or a ``.env`` file.

Example:
    # Via environment variables
    export TELEMETRY_BASE_URL="https://ops.example.com/api"
    export TELEMETRY_MAX_RETRIES=5
    export TELEMETRY_METRIC_NAME_MAP='{"uptime": "ruinos_uptime_seconds"}'

    # In code
    from libs.telemetry.config import TelemetrySettings
    settings = TelemetrySettings()
    settings.retry_config().max_retries  # 5
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# SystemMetrics field (snake_case attribute) -> exposition metric name
DEFAULT_METRIC_NAME_MAP: dict[str, str] = {
    "uptime": "process_uptime_seconds",
    "request_count": "http_requests_total",
    "error_rate": "http_request_error_rate",
    "average_response_time": "http_request_duration_seconds",
    "active_connections": "http_active_connections",
    "memory_usage": "process_memory_usage_bytes",
}

PROJECTABLE_FIELDS = frozenset(DEFAULT_METRIC_NAME_MAP)


def validate_metric_name_map(name_map: dict[str, str]) -> dict[str, str]:
    """Check that every key is a SystemMetrics field and every value non-empty.

    Returns a new map with defaults filled in for fields not overridden.

    Raises:
        ValueError: On an unknown field or an empty metric name
    """
    unknown = sorted(set(name_map) - PROJECTABLE_FIELDS)
    if unknown:
        raise ValueError(
            f"Unknown SystemMetrics field(s) in metric name map: {', '.join(unknown)}"
        )
    empty = sorted(field for field, metric in name_map.items() if not metric or not metric.strip())
    if empty:
        raise ValueError(f"Empty metric name for field(s): {', '.join(empty)}")
    return {**DEFAULT_METRIC_NAME_MAP, **{k: v.strip() for k, v in name_map.items()}}


class RetryConfig(BaseModel):
    """Retry budget and backoff shape.

    The n-th retry (0-based) waits ``retry_delay * backoff_multiplier ** n`` seconds.
    """

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    retry_delay: float = Field(default=1.0, ge=0, description="First backoff delay (seconds)")
    backoff_multiplier: float = Field(default=2.0, ge=1.0, description="Growth factor per retry")


class TelemetrySettings(BaseSettings):
    """
    Settings for TelemetryClient.

    Attributes:
        base_url: Root URL the fixed endpoint paths are appended to
        timeout_seconds: Per-request timeout enforced by httpx
        api_token: Optional bearer token sent on every request
        max_retries: Retries after the first attempt for transient failures
        retry_delay_seconds: Delay before the first retry
        backoff_multiplier: Factor applied to the delay on each further retry
        metric_name_map: SystemMetrics field -> exposition metric name overrides
        poll_interval_seconds: HealthMonitor refresh period
        history_size: Reports kept by HealthMonitor
        log_level: Level passed to configure_logging by embedding applications
    """

    model_config = SettingsConfigDict(
        env_prefix="TELEMETRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    base_url: str = "http://localhost:8787/api"
    timeout_seconds: float = Field(default=10.0, gt=0)
    api_token: SecretStr | None = None

    max_retries: int = Field(default=3, ge=0)
    retry_delay_seconds: float = Field(default=1.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)

    metric_name_map: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_METRIC_NAME_MAP))

    poll_interval_seconds: float = Field(default=30.0, gt=0)
    history_size: int = Field(default=100, ge=1)

    log_level: str = "INFO"

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http:// or https://, got {v!r}")
        return v.rstrip("/")

    @field_validator("metric_name_map")
    @classmethod
    def validate_name_map(cls, v: dict[str, str]) -> dict[str, str]:
        return validate_metric_name_map(v)

    def retry_config(self) -> RetryConfig:
        """Build the frozen RetryConfig for a client instance."""
        return RetryConfig(
            max_retries=self.max_retries,
            retry_delay=self.retry_delay_seconds,
            backoff_multiplier=self.backoff_multiplier,
        )
