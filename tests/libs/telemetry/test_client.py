"""Tests for the TelemetryClient facade."""

from __future__ import annotations

import httpx
import pytest

from libs.telemetry.client import TelemetryClient
from libs.telemetry.config import TelemetrySettings
from libs.telemetry.exceptions import ApiError
from libs.telemetry.monitor import HealthMonitor


def _settings(**overrides) -> TelemetrySettings:
    values = {
        "base_url": "http://svc/api",
        "max_retries": 2,
        "retry_delay_seconds": 0.5,
        "backoff_multiplier": 3.0,
        "poll_interval_seconds": 12.0,
        "history_size": 7,
    }
    values.update(overrides)
    return TelemetrySettings(_env_file=None, **values)


@pytest.mark.asyncio()
async def test_settings_flow_into_components(mock_http, sleep_recorder) -> None:
    http = mock_http({"/health/live": [httpx.Response(500)] * 3})
    client = TelemetryClient(_settings(), http_client=http, sleep=sleep_recorder)

    with pytest.raises(ApiError):
        await client.get_liveness()

    assert len(http.calls) == 3
    assert sleep_recorder.delays == [0.5, 1.5]
    assert client.retry_config.max_retries == 2


@pytest.mark.asyncio()
async def test_api_token_sent_as_bearer(mock_http, sleep_recorder) -> None:
    http = mock_http(
        {"/health/ready": [httpx.Response(200, json={"status": "ready", "timestamp": 5})]}
    )
    client = TelemetryClient(_settings(api_token="tok-xyz"), http_client=http, sleep=sleep_recorder)

    probe = await client.get_readiness()

    assert probe.status == "ready"
    assert http.calls[0][2]["Authorization"] == "Bearer tok-xyz"


@pytest.mark.asyncio()
async def test_token_provider_overrides_static_token(mock_http) -> None:
    http = mock_http(
        {"/health/ready": [httpx.Response(200, json={"status": "ready", "timestamp": 5})]}
    )
    client = TelemetryClient(
        _settings(api_token="static"), token_provider=lambda: "rotated", http_client=http
    )

    await client.get_readiness()

    assert http.calls[0][2]["Authorization"] == "Bearer rotated"


@pytest.mark.asyncio()
async def test_health_with_details_end_to_end(
    mock_http, sleep_recorder, health_payload, exposition_text
) -> None:
    http = mock_http(
        {
            "/health": [httpx.Response(200, json=health_payload)],
            "/health/ready": [httpx.Response(503)] * 3,
            "/health/live": [httpx.Response(200, json={"status": "alive", "timestamp": 9})],
            "/metrics": [httpx.Response(404), httpx.Response(200, text=exposition_text)],
        }
    )

    async with TelemetryClient(_settings(), http_client=http, sleep=sleep_recorder) as client:
        report = await client.get_health_with_details()

    assert report.failed_endpoints == ["/health/ready"]
    assert report.readiness.status == "not ready"
    assert report.liveness.status == "alive"
    assert report.metrics.uptime == 7200.0
    assert http.is_closed is True


@pytest.mark.asyncio()
async def test_custom_metric_names_from_settings(mock_http) -> None:
    http = mock_http(
        {"/metrics": [httpx.Response(404), httpx.Response(200, text="ruinos_uptime_seconds 33\n")]}
    )
    client = TelemetryClient(
        _settings(metric_name_map={"uptime": "ruinos_uptime_seconds"}), http_client=http
    )

    metrics = await client.get_metrics()

    assert metrics.uptime == 33.0


@pytest.mark.asyncio()
async def test_get_exposition_and_detailed_health(mock_http, health_payload) -> None:
    http = mock_http(
        {
            "/metrics": [httpx.Response(200, text="up 1\n")],
            "/health/detailed": [httpx.Response(200, json=health_payload)],
        }
    )
    client = TelemetryClient(_settings(), http_client=http)

    table = await client.get_exposition()
    detailed = await client.get_detailed_health()

    assert table["up"].value == 1.0
    assert detailed.environment == "production"


def test_create_monitor_uses_settings(mock_http) -> None:
    client = TelemetryClient(_settings(), http_client=mock_http())

    monitor = client.create_monitor()

    assert isinstance(monitor, HealthMonitor)
    assert monitor.refresh_interval == 12.0
    assert monitor.aggregator is client.aggregator


def test_create_monitor_overrides(mock_http) -> None:
    client = TelemetryClient(_settings(), http_client=mock_http())

    monitor = client.create_monitor(refresh_interval=1.0, history_size=2)

    assert monitor.refresh_interval == 1.0
