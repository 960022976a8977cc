"""W3C trace context parsing, generation and propagation."""

import re
import secrets
from contextvars import ContextVar
from typing import Mapping, Protocol

from ..models import ParsedTraceparent, TraceContext

TRACEPARENT_HEADER = "traceparent"
TRACESTATE_HEADER = "tracestate"

SUPPORTED_VERSION = "00"
SAMPLED_FLAG = 0x01

_INVALID_TRACE_ID = "0" * 32
_INVALID_SPAN_ID = "0" * 16
_TRACEPARENT_RE = re.compile(
    r"^(?P<version>[0-9a-f]{2})-(?P<trace_id>[0-9a-f]{32})-"
    r"(?P<span_id>[0-9a-f]{16})-(?P<flags>[0-9a-f]{2})$"
)
_TRACE_ID_RE = re.compile(r"^[0-9a-f]{32}$")
_SPAN_ID_RE = re.compile(r"^[0-9a-f]{16}$")

# Trace context of the span currently executing in this task.
_current_context: ContextVar[TraceContext | None] = ContextVar(
    "current_trace_context", default=None
)


def get_current_context() -> TraceContext | None:
    """Return the trace context of the active span, if any."""
    return _current_context.get()


def set_current_context(context: TraceContext | None):
    """Set the active trace context; returns a token for reset_current_context."""
    return _current_context.set(context)


def reset_current_context(token) -> None:
    _current_context.reset(token)


def generate_trace_id() -> str:
    """Generate a random 128-bit trace id (32 hex chars, never all zeros)."""
    while True:
        trace_id = secrets.token_hex(16)
        if trace_id != _INVALID_TRACE_ID:
            return trace_id


def generate_span_id() -> str:
    """Generate a random 64-bit span id (16 hex chars, never all zeros)."""
    while True:
        span_id = secrets.token_hex(8)
        if span_id != _INVALID_SPAN_ID:
            return span_id


def is_valid_trace_id(trace_id: str) -> bool:
    return (
        isinstance(trace_id, str)
        and _TRACE_ID_RE.match(trace_id) is not None
        and trace_id != _INVALID_TRACE_ID
    )


def is_valid_span_id(span_id: str) -> bool:
    return (
        isinstance(span_id, str)
        and _SPAN_ID_RE.match(span_id) is not None
        and span_id != _INVALID_SPAN_ID
    )


def format_traceparent(trace_id: str, span_id: str, flags: int = SAMPLED_FLAG) -> str:
    """Format a traceparent header value: 00-{trace_id}-{span_id}-{flags:02x}."""
    if not is_valid_trace_id(trace_id):
        raise ValueError(f"Invalid trace id: {trace_id!r}")
    if not is_valid_span_id(span_id):
        raise ValueError(f"Invalid span id: {span_id!r}")
    if not 0 <= flags <= 0xFF:
        raise ValueError(f"Trace flags must fit in one byte, got {flags}")
    return f"{SUPPORTED_VERSION}-{trace_id}-{span_id}-{flags:02x}"


def parse_traceparent(value: str | None) -> ParsedTraceparent | None:
    """
    Parse a traceparent header value.

    Strict inverse of format_traceparent(): only version 00, lowercase hex,
    exact field lengths and non-zero ids are accepted. Returns None for
    anything else.
    """
    if not value or not isinstance(value, str):
        return None

    match = _TRACEPARENT_RE.match(value)
    if match is None:
        return None

    if match.group("version") != SUPPORTED_VERSION:
        return None

    trace_id = match.group("trace_id")
    span_id = match.group("span_id")
    if trace_id == _INVALID_TRACE_ID or span_id == _INVALID_SPAN_ID:
        return None

    return ParsedTraceparent(
        version=SUPPORTED_VERSION,
        trace_id=trace_id,
        span_id=span_id,
        trace_flags=int(match.group("flags"), 16),
    )


def _header_text(value) -> str | None:
    """Decode a header value delivered as bytes, str or a list of either."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        value = value[0]
    if isinstance(value, (bytes, bytearray)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            return None
    return str(value)


class ITraceContextManager(Protocol):
    """Propagation of distributed trace context through message headers."""

    def extract(self, headers: Mapping) -> TraceContext | None:
        """Read the inbound trace context; None when absent or malformed."""
        ...

    def continue_or_create(self, extracted: TraceContext | None) -> TraceContext:
        """Start a child span of `extracted`, or a new trace."""
        ...

    def inject(self, headers: Mapping, context: TraceContext) -> dict:
        """Return a copy of headers carrying `context`."""
        ...


class TraceContextManager:
    """Extracts, continues and injects W3C trace context."""

    def extract(self, headers: Mapping | None) -> TraceContext | None:
        """
        Extract trace context from message headers.

        Absent or malformed headers are a normal case: tracing is best-effort,
        so this never raises and simply returns None.
        """
        if not headers:
            return None

        parsed = parse_traceparent(_header_text(headers.get(TRACEPARENT_HEADER)))
        if parsed is None:
            return None

        trace_state = _header_text(headers.get(TRACESTATE_HEADER)) or None
        return TraceContext(
            trace_id=parsed.trace_id,
            span_id=parsed.span_id,
            trace_flags=parsed.trace_flags,
            trace_state=trace_state,
        )

    def continue_or_create(self, extracted: TraceContext | None) -> TraceContext:
        """
        Create the context for a new processing unit.

        The trace id of `extracted` is kept and a fresh span id is generated,
        with the inbound span recorded as parent. Without an inbound context
        a new sampled trace is started.
        """
        if extracted is None:
            return TraceContext(
                trace_id=generate_trace_id(),
                span_id=generate_span_id(),
                trace_flags=SAMPLED_FLAG,
            )

        span_id = generate_span_id()
        while span_id == extracted.span_id:
            span_id = generate_span_id()

        return TraceContext(
            trace_id=extracted.trace_id,
            span_id=span_id,
            trace_flags=extracted.trace_flags,
            trace_state=extracted.trace_state,
            parent_span_id=extracted.span_id,
        )

    def inject(self, headers: Mapping | None, context: TraceContext) -> dict:
        """Return a copy of headers with traceparent (and tracestate) set."""
        injected = dict(headers or {})
        injected[TRACEPARENT_HEADER] = format_traceparent(
            context.trace_id, context.span_id, context.trace_flags
        )
        if context.trace_state:
            injected[TRACESTATE_HEADER] = context.trace_state
        else:
            # a stale tracestate must not ride along with the new traceparent
            injected.pop(TRACESTATE_HEADER, None)
        return injected

    def format(self, trace_id: str, span_id: str, flags: int = SAMPLED_FLAG) -> str:
        return format_traceparent(trace_id, span_id, flags)

    def parse(self, value: str | None) -> ParsedTraceparent | None:
        return parse_traceparent(value)
