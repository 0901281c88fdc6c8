"""Tests for logging configuration and trace ID propagation."""

import json
import logging
from io import StringIO

import httpx
import pytest

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
    get_or_create_trace_id,
    get_trace_id,
    set_trace_id,
)
from libs.common.logging.formatter import JSONFormatter
from libs.common.logging.http_client import TracedHTTPXClient, get_traced_client


@pytest.fixture(autouse=True)
def _reset_trace_id():
    clear_trace_id()
    yield
    clear_trace_id()


class TestTraceContext:
    def test_set_and_get(self) -> None:
        set_trace_id("sweep-1")

        assert get_trace_id() == "sweep-1"

    def test_empty_trace_id_rejected(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            set_trace_id("")

    def test_get_or_create_is_stable(self) -> None:
        first = get_or_create_trace_id()

        assert get_or_create_trace_id() == first

    def test_log_context_restores_previous(self) -> None:
        set_trace_id("outer")

        with LogContext("inner") as trace_id:
            assert trace_id == "inner"
            assert get_trace_id() == "inner"

        assert get_trace_id() == "outer"

    def test_nested_log_contexts(self) -> None:
        with LogContext("outer"):
            with LogContext("inner"):
                assert get_trace_id() == "inner"
            assert get_trace_id() == "outer"

        assert get_trace_id() is None

    def test_log_context_generates_and_clears(self) -> None:
        with LogContext() as trace_id:
            assert trace_id
            assert get_trace_id() == trace_id

        assert get_trace_id() is None


class TestTraceIDFilter:
    def test_filter_stamps_current_trace_id(self) -> None:
        record = logging.LogRecord("t", logging.INFO, "/f.py", 1, "msg", (), None)
        set_trace_id("sweep-9")

        assert TraceIDFilter().filter(record) is True
        assert record.trace_id == "sweep-9"  # type: ignore[attr-defined]

    def test_filter_stamps_none_without_trace_id(self) -> None:
        record = logging.LogRecord("t", logging.INFO, "/f.py", 1, "msg", (), None)

        assert TraceIDFilter().filter(record) is True
        assert record.trace_id is None  # type: ignore[attr-defined]


class TestConfigureLogging:
    def teardown_method(self) -> None:
        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.setLevel(logging.WARNING)
        for name in ("httpx", "httpcore"):
            logging.getLogger(name).setLevel(logging.NOTSET)

    def test_returns_root_logger_at_level(self) -> None:
        logger = configure_logging(service_name="telemetry_client", log_level="debug")

        assert logger is logging.getLogger()
        assert logger.level == logging.DEBUG

    def test_invalid_level_raises(self) -> None:
        with pytest.raises(ValueError, match="Invalid log level"):
            configure_logging(service_name="telemetry_client", log_level="VERBOSE")

    def test_replaces_existing_handlers(self) -> None:
        root_logger = logging.getLogger()
        dummy = logging.StreamHandler()
        root_logger.addHandler(dummy)

        configure_logging(service_name="telemetry_client")

        assert len(root_logger.handlers) == 1
        handler = root_logger.handlers[0]
        assert handler is not dummy
        assert isinstance(handler.formatter, JSONFormatter)
        assert any(isinstance(f, TraceIDFilter) for f in handler.filters)

    def test_writes_json_to_stream_and_quiets_http_loggers(self) -> None:
        stream = StringIO()
        configure_logging(service_name="ops_dashboard", log_level="DEBUG", stream=stream)

        with LogContext("sweep-3"):
            logging.getLogger("libs.telemetry.aggregator").debug("Sweep started")

        log_dict = json.loads(stream.getvalue().strip())
        assert log_dict["service"] == "ops_dashboard"
        assert log_dict["trace_id"] == "sweep-3"
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING


class TestLogWithContext:
    def setup_method(self) -> None:
        self.stream = StringIO()
        self.logger = get_logger("telemetry-context-test")
        self.logger.setLevel(logging.DEBUG)
        self.logger.handlers.clear()
        self.logger.propagate = False
        handler = logging.StreamHandler(self.stream)
        handler.setFormatter(JSONFormatter(service_name="telemetry_client"))
        handler.addFilter(TraceIDFilter())
        self.logger.addHandler(handler)

    def teardown_method(self) -> None:
        self.logger.handlers.clear()

    def test_context_fields_and_trace_id(self) -> None:
        with LogContext("sweep-77"):
            log_with_context(self.logger, "WARNING", "Sub-fetch failed", endpoint="/health/live")

        log_dict = json.loads(self.stream.getvalue().strip())

        assert log_dict["level"] == "WARNING"
        assert log_dict["trace_id"] == "sweep-77"
        assert log_dict["context"] == {"endpoint": "/health/live"}


class TestTracedHTTPXClient:
    @staticmethod
    def _echo_client() -> TracedHTTPXClient:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"trace": request.headers.get(TRACE_ID_HEADER)})

        return get_traced_client(base_url="http://svc/api", transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio()
    async def test_forwards_trace_id(self) -> None:
        async with self._echo_client() as client:
            with LogContext("sweep-5"):
                response = await client.get("/health")

        assert response.json() == {"trace": "sweep-5"}

    @pytest.mark.asyncio()
    async def test_explicit_header_kept(self) -> None:
        async with self._echo_client() as client:
            with LogContext("sweep-5"):
                response = await client.get("/health", headers={TRACE_ID_HEADER: "caller"})

        assert response.json() == {"trace": "caller"}

    @pytest.mark.asyncio()
    async def test_no_header_without_trace_id(self) -> None:
        async with self._echo_client() as client:
            response = await client.get("/health")

        assert response.json() == {"trace": None}

    @pytest.mark.asyncio()
    async def test_user_agent_default_and_override(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=request.headers["User-Agent"])

        mock = httpx.MockTransport(handler)
        async with get_traced_client(transport=mock) as client:
            default = await client.get("http://svc/health")
        async with get_traced_client(headers={"User-Agent": "ops/2"}, transport=mock) as client:
            custom = await client.get("http://svc/health")

        assert default.text == "resilient-telemetry-client"
        assert custom.text == "ops/2"
