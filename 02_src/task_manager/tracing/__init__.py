"""Tracing module."""

from .trace_context import (
    TRACEPARENT_HEADER,
    TRACESTATE_HEADER,
    ITraceContextManager,
    TraceContextManager,
    format_traceparent,
    generate_span_id,
    generate_trace_id,
    get_current_context,
    is_valid_span_id,
    is_valid_trace_id,
    parse_traceparent,
    reset_current_context,
    set_current_context,
)

__all__ = [
    "TRACEPARENT_HEADER",
    "TRACESTATE_HEADER",
    "ITraceContextManager",
    "TraceContextManager",
    "format_traceparent",
    "generate_span_id",
    "generate_trace_id",
    "get_current_context",
    "is_valid_span_id",
    "is_valid_trace_id",
    "parse_traceparent",
    "reset_current_context",
    "set_current_context",
]
