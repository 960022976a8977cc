"""Tracing and observability data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal


@dataclass(frozen=True)
class TraceContext:
    """W3C trace context for one processing unit."""

    trace_id: str  # 32 lowercase hex chars
    span_id: str  # 16 lowercase hex chars
    trace_flags: int = 1
    trace_state: str | None = None
    parent_span_id: str | None = None

    @property
    def sampled(self) -> bool:
        return bool(self.trace_flags & 0x01)


@dataclass(frozen=True)
class ParsedTraceparent:
    """Components of a traceparent header value."""

    version: str
    trace_id: str
    span_id: str
    trace_flags: int


@dataclass
class SpanEvent:
    """A timestamped event attached to a span."""

    name: str
    timestamp: datetime
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass
class Span:
    """A unit of traced work (router step, handler, downstream call)."""

    name: str
    context: TraceContext
    start_time: datetime
    attributes: dict[str, Any] = field(default_factory=dict)
    events: list[SpanEvent] = field(default_factory=list)
    status: Literal["unset", "ok", "error"] = "unset"
    status_message: str | None = None
    end_time: datetime | None = None

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    def set_attributes(self, attributes: dict[str, Any]) -> None:
        self.attributes.update(attributes)

    def add_event(self, name: str, attributes: dict[str, Any] | None = None) -> None:
        self.events.append(
            SpanEvent(
                name=name,
                timestamp=datetime.now(timezone.utc),
                attributes=dict(attributes or {}),
            )
        )


@dataclass
class TraceEvent:
    """A single observability event for the ops API."""

    id: str
    event_type: str  # e.g. "task_created", "routing_failed"
    actor: str  # who created this event
    data: dict  # full self-contained data for display
    timestamp: datetime
    trace_id: str | None = None
    span_id: str | None = None
