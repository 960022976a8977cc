"""Tests for TelemetryExporter and TelemetryLogHandler."""

import json
import logging
from datetime import datetime, timezone

import httpx
import pytest
import pytest_asyncio

from task_manager.models import Span, TraceContext
from task_manager.resilience import CircuitBreaker, CircuitBreakerConfig, CircuitBreakerState
from task_manager.telemetry import (
    TelemetryExporter,
    TelemetryLogHandler,
    otel_attributes,
    otel_value,
)

from conftest import PARENT_SPAN_ID, TRACE_ID


class Collector:
    """Records OTLP requests; answers with a configurable status."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code)

    def payloads(self, path: str) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.url.path == path]


def make_span(status: str = "ok") -> Span:
    now = datetime.now(timezone.utc)
    span = Span(
        name="TaskStatusRouter.route",
        context=TraceContext(trace_id=TRACE_ID, span_id="b7ad6b7169203331", parent_span_id=PARENT_SPAN_ID),
        start_time=now,
        attributes={"task.id": "t1", "messaging.offset": 3},
        status=status,
        end_time=now,
    )
    span.add_event("routing.headers_validated", {"schema": "NewTaskHeader"})
    return span


def log_entry(message: str = "hello") -> dict:
    return {
        "created": 1_700_000_000.0,
        "levelno": logging.ERROR,
        "level": "ERROR",
        "message": message,
        "attributes": {"logger": "test"},
        "trace_id": TRACE_ID,
        "span_id": PARENT_SPAN_ID,
    }


@pytest.fixture
def collector():
    return Collector()


@pytest.fixture
def breaker():
    return CircuitBreaker(
        CircuitBreakerConfig(failure_threshold=2, reset_timeout_ms=60_000, success_threshold=1),
        name="otel-collector",
    )


@pytest_asyncio.fixture
async def exporter(collector, breaker):
    client = httpx.AsyncClient(transport=httpx.MockTransport(collector))
    exp = TelemetryExporter("http://collector:4318/", "task-manager", breaker, client=client)
    yield exp
    await client.aclose()


class TestOtelEncoding:
    """Tests for attribute encoding."""

    def test_value_types(self):
        assert otel_value(True) == {"boolValue": True}
        assert otel_value(3) == {"intValue": 3}
        assert otel_value(1.5) == {"doubleValue": 1.5}
        assert otel_value("x") == {"stringValue": "x"}
        assert otel_value({"a": 1}) == {"stringValue": '{"a": 1}'}

    def test_attributes_skip_none(self):
        assert otel_attributes({"a": None, "b": "x"}) == [{"key": "b", "value": {"stringValue": "x"}}]


class TestExport:
    """Tests for pushing to the collector."""

    @pytest.mark.asyncio
    async def test_export_spans(self, exporter, collector):
        """Test the OTLP trace payload."""
        assert await exporter.export_spans([make_span()])

        payload = collector.payloads("/v1/traces")[0]
        resource = payload["resourceSpans"][0]
        assert {"key": "service.name", "value": {"stringValue": "task-manager"}} in resource[
            "resource"
        ]["attributes"]
        span = resource["scopeSpans"][0]["spans"][0]
        assert span["traceId"] == TRACE_ID
        assert span["parentSpanId"] == PARENT_SPAN_ID
        assert span["kind"] == 5
        assert span["status"]["code"] == 1
        assert span["events"][0]["name"] == "routing.headers_validated"

    @pytest.mark.asyncio
    async def test_export_logs(self, exporter, collector):
        """Test the OTLP log payload and severity mapping."""
        assert await exporter.export_logs([log_entry()])

        record = collector.payloads("/v1/logs")[0]["resourceLogs"][0]["scopeLogs"][0]["logRecords"][0]
        assert record["severityNumber"] == 17
        assert record["body"] == {"stringValue": "hello"}
        assert record["traceId"] == TRACE_ID

    @pytest.mark.asyncio
    async def test_flush_drains_buffers(self, exporter, collector):
        """Test that flush sends buffered logs and spans once."""
        exporter.record_log(log_entry())
        exporter.record_span(make_span())
        assert exporter.pending == (1, 1)

        await exporter.flush()
        await exporter.flush()

        assert exporter.pending == (0, 0)
        assert len(collector.requests) == 2
        assert exporter.exported_batches == 2

    @pytest.mark.asyncio
    async def test_collector_errors_are_swallowed(self, exporter, collector, breaker):
        """Test that failed pushes are dropped and trip the breaker."""
        collector.status_code = 503

        assert await exporter.export_logs([log_entry()]) is False
        assert await exporter.export_logs([log_entry()]) is False
        assert breaker.state is CircuitBreakerState.OPEN

        # Rejected by the open breaker without reaching the collector.
        assert await exporter.export_logs([log_entry()]) is False
        assert len(collector.requests) == 2
        assert exporter.dropped_batches == 3

    @pytest.mark.asyncio
    async def test_connection_error_swallowed(self, breaker):
        """Test that transport errors never escape."""

        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(refuse))
        exporter = TelemetryExporter("http://collector:4318", "svc", breaker, client=client)

        assert await exporter.export_spans([make_span()]) is False
        assert exporter.dropped_batches == 1
        await client.aclose()

    @pytest.mark.asyncio
    async def test_disabled_is_noop(self, collector, breaker):
        """Test that a disabled exporter never buffers or sends."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(collector))
        exporter = TelemetryExporter("http://c", "svc", breaker, client=client, enabled=False)

        exporter.record_log(log_entry())
        exporter.record_span(make_span())
        await exporter.flush()

        assert exporter.pending == (0, 0)
        assert collector.requests == []
        await client.aclose()


class TestTelemetryLogHandler:
    """Tests for TelemetryLogHandler."""

    def test_buffers_records(self, exporter):
        """Test that application records are buffered with their context."""
        handler = TelemetryLogHandler(exporter)
        logger = logging.getLogger("task_manager.routing.router")
        record = logger.makeRecord(
            logger.name, logging.ERROR, __file__, 1, "failed %s", ("t1",), None,
            extra={"context": {"task_id": "t1"}},
        )

        handler.emit(record)

        assert exporter.pending == (1, 0)
        entry = exporter._logs[0]
        assert entry["message"] == "failed t1"
        assert entry["attributes"]["task_id"] == "t1"

    def test_skips_internal_loggers(self, exporter):
        """Test that exporter and HTTP client logs are not exported."""
        handler = TelemetryLogHandler(exporter)
        for name in ("task_manager.telemetry.exporter", "httpx"):
            logger = logging.getLogger(name)
            handler.emit(logger.makeRecord(name, logging.ERROR, __file__, 1, "x", (), None))

        assert exporter.pending == (0, 0)

    def test_respects_level(self, exporter):
        """Test that records below the handler level are not buffered."""
        handler = TelemetryLogHandler(exporter, level=logging.WARNING)
        logger = logging.getLogger("task_manager.app")
        logger.addHandler(handler)
        try:
            logger.info("below level")
            handler.emit(logger.makeRecord(logger.name, logging.INFO, __file__, 1, "x", (), None))
            assert exporter.pending == (0, 0)

            logger.warning("at level")
            assert exporter.pending == (1, 0)
        finally:
            logger.removeHandler(handler)
