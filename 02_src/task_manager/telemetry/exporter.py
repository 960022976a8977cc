"""OTLP/HTTP telemetry export guarded by a circuit breaker."""

import asyncio
import json
import logging
import time
from collections import deque
from datetime import datetime
from typing import Any

import httpx

from ..logging_config import get_logger
from ..models import Span
from ..resilience import CircuitBreaker, CircuitOpenError
from ..tracing import get_current_context

# Loggers whose records are never exported, so export failures cannot feed
# back into the export buffer.
INTERNAL_LOGGER_PREFIXES = (
    "task_manager.telemetry",
    "task_manager.resilience",
    "httpx",
    "httpcore",
)

logger = get_logger(__name__)

SCOPE_NAME = "task-manager"
SCOPE_VERSION = "1.0.0"

_SEVERITY_NUMBERS = {
    logging.DEBUG: 5,
    logging.INFO: 9,
    logging.WARNING: 13,
    logging.ERROR: 17,
    logging.CRITICAL: 21,
}

_SPAN_KIND_CONSUMER = 5
_STATUS_CODES = {"unset": 0, "ok": 1, "error": 2}


class TelemetryExportError(Exception):
    """The collector rejected a push or could not be reached."""


def _unix_nano(moment: datetime | float) -> str:
    if isinstance(moment, datetime):
        return str(int(moment.timestamp() * 1_000_000_000))
    return str(int(moment * 1_000_000_000))


def otel_value(value: Any) -> dict:
    """Encode a Python value as an OTLP AnyValue."""
    if isinstance(value, bool):
        return {"boolValue": value}
    if isinstance(value, int):
        return {"intValue": value}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    return {"stringValue": json.dumps(value, default=str)}


def otel_attributes(attributes: dict[str, Any] | None) -> list[dict]:
    if not attributes:
        return []
    return [
        {"key": key, "value": otel_value(value)}
        for key, value in attributes.items()
        if value is not None
    ]


class TelemetryExporter:
    """
    Pushes buffered log records and finished spans to an OTLP collector.

    Every push goes through the circuit breaker. Export failures, including
    breaker rejections, are swallowed: a collector outage must never fail
    message processing. Once started, buffers are flushed by a background
    task so callers never wait on the collector.
    """

    def __init__(
        self,
        endpoint: str,
        service_name: str,
        breaker: CircuitBreaker,
        client: httpx.AsyncClient | None = None,
        timeout: float = 5.0,
        enabled: bool = True,
        max_buffer: int = 2048,
    ):
        self._endpoint = endpoint.rstrip("/")
        self._service_name = service_name
        self._breaker = breaker
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._enabled = enabled
        self._logs: deque[dict] = deque(maxlen=max_buffer)
        self._spans: deque[Span] = deque(maxlen=max_buffer)
        self._flush_task: asyncio.Task | None = None
        self._stopping = asyncio.Event()
        self.exported_batches = 0
        self.dropped_batches = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def pending(self) -> tuple[int, int]:
        """Buffered (log records, spans)."""
        return len(self._logs), len(self._spans)

    def record_span(self, span: Span) -> None:
        if self._enabled:
            self._spans.append(span)

    def record_log(self, entry: dict) -> None:
        if self._enabled:
            self._logs.append(entry)

    async def flush(self) -> None:
        """Export everything buffered so far."""
        if not self._enabled:
            return

        logs = [self._logs.popleft() for _ in range(len(self._logs))]
        spans = [self._spans.popleft() for _ in range(len(self._spans))]

        if logs:
            await self.export_logs(logs)
        if spans:
            await self.export_spans(spans)

    async def export_logs(self, records: list[dict]) -> bool:
        payload = {
            "resourceLogs": [
                {
                    "resource": self._resource(),
                    "scopeLogs": [
                        {
                            "scope": {"name": SCOPE_NAME, "version": SCOPE_VERSION},
                            "logRecords": [self._log_record(r) for r in records],
                        }
                    ],
                }
            ]
        }
        return await self._push("/v1/logs", payload)

    async def export_spans(self, spans: list[Span]) -> bool:
        payload = {
            "resourceSpans": [
                {
                    "resource": self._resource(),
                    "scopeSpans": [
                        {
                            "scope": {"name": SCOPE_NAME, "version": SCOPE_VERSION},
                            "spans": [self._span(s) for s in spans],
                        }
                    ],
                }
            ]
        }
        return await self._push("/v1/traces", payload)

    def start(self, interval: float = 1.0) -> None:
        """Flush in the background every `interval` seconds."""
        if not self._enabled or self._flush_task is not None:
            return
        self._stopping.clear()
        self._flush_task = asyncio.create_task(self._flush_loop(interval))

    async def aclose(self) -> None:
        """Stop the background flush, export what is left and close the client."""
        if self._flush_task is not None:
            self._stopping.set()
            await self._flush_task
            self._flush_task = None
        await self.flush()
        if self._owns_client:
            await self._client.aclose()

    async def _flush_loop(self, interval: float) -> None:
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
            await self.flush()

    async def _push(self, path: str, payload: dict) -> bool:
        try:
            await self._breaker.execute(lambda: self._post(path, payload))
        except CircuitOpenError as e:
            self.dropped_batches += 1
            logger.debug("Telemetry batch dropped: %s", e)
            return False
        except Exception as e:
            self.dropped_batches += 1
            logger.debug("Telemetry export to %s%s failed: %s", self._endpoint, path, e)
            return False

        self.exported_batches += 1
        return True

    async def _post(self, path: str, payload: dict) -> None:
        url = f"{self._endpoint}{path}"
        try:
            response = await self._client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise TelemetryExportError(f"Collector connection error: {e}") from e

        if not response.is_success:
            raise TelemetryExportError(
                f"Collector HTTP {response.status_code}: {response.reason_phrase}"
            )

    def _resource(self) -> dict:
        return {
            "attributes": otel_attributes(
                {"service.name": self._service_name, "service.version": SCOPE_VERSION}
            )
        }

    @staticmethod
    def _log_record(record: dict) -> dict:
        encoded = {
            "timeUnixNano": _unix_nano(record["created"]),
            "severityNumber": _SEVERITY_NUMBERS.get(record["levelno"], 9),
            "severityText": record["level"],
            "body": {"stringValue": record["message"]},
            "attributes": otel_attributes(record.get("attributes")),
        }
        if record.get("trace_id"):
            encoded["traceId"] = record["trace_id"]
            encoded["spanId"] = record["span_id"]
        return encoded

    @staticmethod
    def _span(span: Span) -> dict:
        encoded = {
            "traceId": span.context.trace_id,
            "spanId": span.context.span_id,
            "name": span.name,
            "kind": _SPAN_KIND_CONSUMER,
            "startTimeUnixNano": _unix_nano(span.start_time),
            "endTimeUnixNano": _unix_nano(span.end_time or span.start_time),
            "attributes": otel_attributes(span.attributes),
            "events": [
                {
                    "timeUnixNano": _unix_nano(event.timestamp),
                    "name": event.name,
                    "attributes": otel_attributes(event.attributes),
                }
                for event in span.events
            ],
            "status": {"code": _STATUS_CODES[span.status]},
        }
        if span.context.parent_span_id:
            encoded["parentSpanId"] = span.context.parent_span_id
        if span.context.trace_state:
            encoded["traceState"] = span.context.trace_state
        if span.status_message:
            encoded["status"]["message"] = span.status_message
        return encoded


class TelemetryLogHandler(logging.Handler):
    """Buffers log records on a TelemetryExporter until the next flush."""

    def __init__(self, exporter: TelemetryExporter, level: int = logging.INFO):
        super().__init__(level)
        self._exporter = exporter

    def emit(self, record: logging.LogRecord) -> None:
        if record.levelno < self.level or record.name.startswith(INTERNAL_LOGGER_PREFIXES):
            return

        try:
            context = get_current_context()
            attributes = {"logger": record.name, "module": record.module}
            extra = getattr(record, "context", None)
            if isinstance(extra, dict):
                attributes.update(extra)

            self._exporter.record_log(
                {
                    "created": record.created or time.time(),
                    "levelno": record.levelno,
                    "level": record.levelname,
                    "message": record.getMessage(),
                    "attributes": attributes,
                    "trace_id": context.trace_id if context else None,
                    "span_id": context.span_id if context else None,
                }
            )
        except Exception:
            self.handleError(record)
