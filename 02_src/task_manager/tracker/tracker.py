"""Tracker implementation for spans and TraceEvents."""

import uuid
from collections import deque
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Protocol

from ..models import Span, TraceContext, TraceEvent
from ..tracing import (
    ITraceContextManager,
    TraceContextManager,
    get_current_context,
    reset_current_context,
    set_current_context,
)


class ISpanSink(Protocol):
    """Receiver of finished spans (the telemetry exporter)."""

    def record_span(self, span: Span) -> None:
        """Queue a finished span for export."""
        ...


class ITracker(Protocol):
    """Creating spans and TraceEvents for one service."""

    def span(
        self,
        name: str,
        parent: TraceContext | None = None,
        attributes: dict[str, Any] | None = None,
        inherit: bool = True,
    ):
        """Async context manager opening a child span."""
        ...

    async def track(self, event_type: str, actor: str, data: dict) -> TraceEvent:
        """Record a TraceEvent."""
        ...


class Tracker:
    """Records spans and TraceEvents in bounded in-memory buffers."""

    def __init__(
        self,
        trace_manager: ITraceContextManager | None = None,
        sink: ISpanSink | None = None,
        max_events: int = 1000,
        max_spans: int = 1000,
    ):
        self._trace_manager = trace_manager or TraceContextManager()
        self._sink = sink
        self._events: deque[TraceEvent] = deque(maxlen=max_events)
        self._spans: deque[Span] = deque(maxlen=max_spans)

    @property
    def trace_manager(self) -> ITraceContextManager:
        return self._trace_manager

    def set_sink(self, sink: ISpanSink | None) -> None:
        self._sink = sink

    @asynccontextmanager
    async def span(
        self,
        name: str,
        parent: TraceContext | None = None,
        attributes: dict[str, Any] | None = None,
        inherit: bool = True,
    ) -> AsyncIterator[Span]:
        """
        Open a span as the continuation of `parent`.

        Without an explicit parent the active span is used when `inherit` is
        set; otherwise a new trace is started. The span becomes the active
        trace context for the duration of the block. An exception marks the
        span as failed and is re-raised.
        """
        if parent is None and inherit:
            parent = get_current_context()

        context = self._trace_manager.continue_or_create(parent)
        span = Span(
            name=name,
            context=context,
            start_time=datetime.now(timezone.utc),
            attributes=dict(attributes or {}),
        )
        if context.parent_span_id:
            span.set_attribute("trace.parent_span_id", context.parent_span_id)

        token = set_current_context(context)
        try:
            yield span
        except Exception as e:
            span.status = "error"
            span.status_message = str(e)
            span.add_event(
                "exception",
                {"exception.type": type(e).__name__, "exception.message": str(e)},
            )
            raise
        else:
            if span.status == "unset":
                span.status = "ok"
        finally:
            span.end_time = datetime.now(timezone.utc)
            reset_current_context(token)
            self._spans.append(span)
            if self._sink is not None:
                self._sink.record_span(span)

    async def track(self, event_type: str, actor: str, data: dict) -> TraceEvent:
        """Create a TraceEvent correlated with the active span."""
        context = get_current_context()
        trace_event = TraceEvent(
            id=str(uuid.uuid4()),
            event_type=event_type,
            actor=actor,
            data=data,
            timestamp=datetime.now(timezone.utc),
            trace_id=context.trace_id if context else None,
            span_id=context.span_id if context else None,
        )
        self._events.append(trace_event)
        return trace_event

    def get_trace_events(
        self,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Most recent TraceEvents, oldest first."""
        events = [
            e
            for e in self._events
            if (not event_types or e.event_type in event_types)
            and (actor is None or e.actor == actor)
        ]
        return events[-limit:]

    def get_spans(self, trace_id: str | None = None, limit: int = 100) -> list[Span]:
        """Most recent finished spans, oldest first."""
        spans = [s for s in self._spans if trace_id is None or s.context.trace_id == trace_id]
        return spans[-limit:]

    def clear(self) -> None:
        self._events.clear()
        self._spans.clear()
