"""Core data models for the task-status consumer."""

from .events import BaseHeader, InboundEvent, ProcessingOutcome, TaskStatus, TaskType
from .errors import (
    ErrorCategory,
    ErrorFrame,
    ErrorLevel,
    ErrorScope,
    FieldViolation,
    RenderedError,
    Severity,
)
from .tasks import Task
from .tracing import ParsedTraceparent, Span, SpanEvent, TraceContext, TraceEvent

__all__ = [
    # Events
    "BaseHeader",
    "InboundEvent",
    "ProcessingOutcome",
    "TaskStatus",
    "TaskType",
    # Errors
    "ErrorCategory",
    "ErrorFrame",
    "ErrorLevel",
    "ErrorScope",
    "FieldViolation",
    "RenderedError",
    "Severity",
    # Tasks
    "Task",
    # Tracing
    "ParsedTraceparent",
    "Span",
    "SpanEvent",
    "TraceContext",
    "TraceEvent",
]
