"""
Stacked error aggregation.

Collects the layers of context an error passed through during one processing
attempt and renders them as a single multi-line diagnostic with a root cause
and actionable guidance.

Frames are kept outer -> inner: the first frame is the outermost component
that observed the failure, the last one is the root cause. render() prints
them in that order under the headline.
"""

import logging
import uuid
from typing import Any

from ..models import (
    ErrorCategory,
    ErrorFrame,
    ErrorLevel,
    ErrorScope,
    FieldViolation,
    RenderedError,
    Severity,
)
from .exceptions import (
    MessageValidationError,
    RoutingError,
    TaskNotFoundError,
    TaskPortError,
)

_VALIDATION_PATTERNS = ("validation", "invalid", "schema")
_DATABASE_PATTERNS = ("database", "postgres", "sql", "deadlock")
_TRANSPORT_PATTERNS = ("kafka", "broker", "topic", "partition", "offset")
_BUSINESS_PATTERNS = ("not found", "business", "logic", "already exists")
_EXTERNAL_PATTERNS = ("external", "service", "unavailable", "timeout", "connection")


def _matches(text: str, patterns: tuple[str, ...]) -> bool:
    return any(pattern in text for pattern in patterns)


def categorize(error: BaseException) -> ErrorCategory:
    """
    Classify an error for log and metric labels.

    Known processing errors map by type; anything else is matched on its
    type name and message. Not meant for control flow.
    """
    if isinstance(error, (RoutingError, MessageValidationError)):
        return ErrorCategory.VALIDATION_ERROR
    if isinstance(error, TaskNotFoundError):
        return ErrorCategory.BUSINESS_LOGIC_ERROR
    if isinstance(error, TaskPortError):
        return ErrorCategory.EXTERNAL_SERVICE_ERROR

    name = type(error).__name__.lower()
    message = str(error).lower()

    if "validation" in name or _matches(message, _VALIDATION_PATTERNS):
        return ErrorCategory.VALIDATION_ERROR
    if _matches(name, _DATABASE_PATTERNS) or _matches(message, _DATABASE_PATTERNS):
        return ErrorCategory.DATABASE_ERROR
    if "kafka" in name or _matches(message, _TRANSPORT_PATTERNS):
        return ErrorCategory.TRANSPORT_ERROR
    if _matches(message, _BUSINESS_PATTERNS):
        return ErrorCategory.BUSINESS_LOGIC_ERROR
    if _matches(message, _EXTERNAL_PATTERNS):
        return ErrorCategory.EXTERNAL_SERVICE_ERROR
    return ErrorCategory.UNKNOWN_ERROR


def determine_root_cause(error: BaseException) -> str:
    message = str(error).lower()
    if _matches(message, _VALIDATION_PATTERNS):
        return "Data validation failed"
    if _matches(message, _DATABASE_PATTERNS):
        return "Database operation failed"
    if _matches(message, _TRANSPORT_PATTERNS):
        return "Message transport failed"
    if "not found" in message:
        return "Resource not found"
    if _matches(message, _EXTERNAL_PATTERNS):
        return "External service failed"
    return "Unknown error occurred"


def validation_action(violation: FieldViolation) -> str:
    """Suggest a fix for one field violation."""
    field = violation.field
    constraint = violation.expected_constraint.lower()

    if constraint == "required":
        return f"Provide a value for {field}"
    if "email" in constraint:
        return f"Provide a valid email address for {field}"
    if "url" in constraint:
        return f"Provide a valid http(s) URL for {field}"
    if "one of" in constraint:
        return f"Use a valid enum value for {field}"
    if "length" in constraint or "characters" in constraint:
        return f"Check the length requirements for {field}"
    if constraint.startswith("type"):
        return f"Ensure {field} has the expected type"
    return f"Review the validation rules for {field}"


class StackedErrorAggregator:
    """
    Error chain for one processing attempt.

    One instance per attempt; initialize() must be called before frames are
    added, and calling it again starts a fresh chain.
    """

    def __init__(self):
        self._frames: list[ErrorFrame] = []
        self._scope: ErrorScope | None = None

    def initialize(
        self, correlation_id: str | None = None, task_id: str | None = None
    ) -> ErrorScope:
        """Begin (or reset) the error chain scope."""
        self._frames = []
        self._scope = ErrorScope(
            correlation_id=correlation_id or str(uuid.uuid4()),
            task_id=task_id,
        )
        return self._scope

    @property
    def scope(self) -> ErrorScope:
        if self._scope is None:
            raise RuntimeError("Error scope not initialized")
        return self._scope

    @property
    def frames(self) -> list[ErrorFrame]:
        return list(self._frames)

    def bind_task(self, task_id: str) -> ErrorScope:
        """Attach the task id once it is known, keeping collected frames."""
        self._scope = ErrorScope(
            correlation_id=self.scope.correlation_id, task_id=task_id
        )
        return self._scope

    def add_frame(
        self,
        level: ErrorLevel,
        component: str,
        operation: str,
        message: str,
        data: Any = None,
        expected: Any = None,
        actual: Any = None,
        action: str | None = None,
    ) -> ErrorFrame:
        """Append one frame to the chain."""
        frame = ErrorFrame(
            level=level,
            component=component,
            operation=operation,
            message=message,
            data=data,
            expected=expected,
            actual=actual,
            action=action,
        )
        self._frames.append(frame)
        return frame

    def add_validation_frames(
        self, violations: list[FieldViolation], component: str
    ) -> list[ErrorFrame]:
        """Add one VALIDATION frame per violation; returns the frames added."""
        added = []
        for violation in violations:
            added.append(
                self.add_frame(
                    ErrorLevel.VALIDATION,
                    component,
                    "validate",
                    f"Field '{violation.field}' validation failed: {violation.message}",
                    data={"field": violation.field, "value": violation.received_value},
                    expected=violation.expected_constraint,
                    actual=violation.received_value,
                    action=validation_action(violation),
                )
            )
        return added

    def render(
        self,
        root_error: BaseException | None,
        handler_name: str,
        severity: Severity = Severity.MEDIUM,
    ) -> RenderedError:
        """Build the headline and indented chain lines; performs no I/O."""
        scope = self.scope
        task_part = f" - taskId: {scope.task_id}" if scope.task_id else ""
        headline = f"{handler_name} processing failed{task_part}"

        chain_lines = []
        for depth, frame in enumerate(self._frames, start=1):
            line = f"{'  ' * depth}└─ {frame.component}: {frame.message}"
            if frame.expected is not None:
                line += f", expected: '{frame.expected}', received: '{frame.actual}'"
            elif frame.actual is not None:
                line += f", received: '{frame.actual}'"
            if frame.action:
                line += f", action: {frame.action}"
            chain_lines.append(line)

        if root_error is None:
            category = ErrorCategory.UNKNOWN_ERROR
            root_cause = "Unknown error occurred"
        else:
            category = categorize(root_error)
            root_cause = determine_root_cause(root_error)

        return RenderedError(
            headline=headline,
            chain_lines=chain_lines,
            correlation_id=scope.correlation_id,
            task_id=scope.task_id,
            category=category,
            severity=severity,
            root_cause=root_cause,
            guidance=self._guidance(),
        )

    def emit(self, rendered: RenderedError, logger: logging.Logger) -> None:
        """Write a rendered chain through `logger`, headline first."""
        logger.error(
            rendered.headline,
            extra={
                "context": {
                    "task_id": rendered.task_id,
                    "correlation_id": rendered.correlation_id,
                    "severity": rendered.severity.value,
                    "error_category": rendered.category.value,
                    "root_cause": rendered.root_cause,
                    "guidance": rendered.guidance,
                }
            },
        )
        for line, frame in zip(rendered.chain_lines, self._frames):
            logger.error(
                line,
                extra={
                    "context": {
                        "task_id": rendered.task_id,
                        "correlation_id": rendered.correlation_id,
                        "level": frame.level.value,
                        "component": frame.component,
                        "operation": frame.operation,
                        "data": frame.data,
                        "expected": frame.expected,
                        "actual": frame.actual,
                        "action": frame.action,
                    }
                },
            )

    def _guidance(self) -> str:
        validation = [f for f in self._frames if f.level is ErrorLevel.VALIDATION]
        if validation:
            return validation[-1].action or "Check input data format and constraints"
        if any(f.level is ErrorLevel.DATABASE for f in self._frames):
            return "Check database connection and query parameters"
        if any(f.level is ErrorLevel.EXTERNAL_SERVICE for f in self._frames):
            return "Check the task service is reachable and healthy"
        if any(f.level is ErrorLevel.BUSINESS_LOGIC for f in self._frames):
            return "Check that the task exists and events are published in order"
        return "Review error details and check system configuration"
