"""
Task-status message router.

Routes each inbound event to the handler registered for its `status`
header after validating headers progressively: the base header first, then
the status-specific header schema. The router is the outermost boundary of a
processing attempt, so it is where the error chain is rendered and logged,
exactly once per failed attempt.
"""

from typing import Mapping

from ..errors import (
    MessageValidationError,
    RoutingError,
    StackedErrorAggregator,
    TaskProcessingError,
)
from ..handlers import IStatusHandler, RoutedMessage
from ..logging_config import get_logger
from ..models import (
    ErrorLevel,
    FieldViolation,
    InboundEvent,
    ProcessingOutcome,
    Severity,
    TaskStatus,
)
from ..tracker import ITracker, Tracker
from ..validation import BaseTaskHeader, NewTaskHeader, TaskUpdateHeader, validate

logger = get_logger(__name__)

ROUTER_NAME = "TaskStatusRouter"

_HEADER_SCHEMAS = {
    TaskStatus.NEW: NewTaskHeader,
    TaskStatus.COMPLETED: TaskUpdateHeader,
    TaskStatus.ERROR: TaskUpdateHeader,
}

_SEVERITY_BY_LEVEL = {
    ErrorLevel.VALIDATION: Severity.LOW,
    ErrorLevel.BUSINESS_LOGIC: Severity.MEDIUM,
    ErrorLevel.EXTERNAL_SERVICE: Severity.HIGH,
    ErrorLevel.DATABASE: Severity.HIGH,
    ErrorLevel.ROOT: Severity.CRITICAL,
}


def decode_headers(raw: Mapping | None) -> dict[str, str]:
    """Header map with bytes decoded as UTF-8; list values keep the first entry."""
    headers: dict[str, str] = {}
    if not raw:
        return headers

    for key, value in raw.items():
        if isinstance(value, (list, tuple)):
            if not value:
                continue
            value = value[0]
        if value is None:
            continue
        if isinstance(value, (bytes, bytearray)):
            value = bytes(value).decode("utf-8", errors="replace")
        headers[str(key)] = str(value)
    return headers


class MessageRouter:
    """Dispatches task-status messages to status handlers."""

    def __init__(
        self,
        tracker: ITracker | None = None,
        handlers: Mapping[TaskStatus, IStatusHandler] | None = None,
    ):
        self._tracker = tracker or Tracker()
        self._handlers: dict[TaskStatus, IStatusHandler] = {}
        for status, handler in (handlers or {}).items():
            self.register(status, handler)

    @property
    def name(self) -> str:
        return ROUTER_NAME

    @property
    def registered_statuses(self) -> list[str]:
        return [status.value for status in self._handlers]

    def register(self, status: TaskStatus, handler: IStatusHandler) -> None:
        """Register the handler for a status, replacing any previous one."""
        self._handlers[TaskStatus(status)] = handler
        logger.debug(
            "Registered %s for status %s",
            handler.name,
            TaskStatus(status).value,
        )

    async def process(self, event: InboundEvent) -> ProcessingOutcome:
        """
        Process one inbound event.

        Returns the outcome on success so the consumer runtime can commit the
        offset. On failure the error chain is logged once and the error is
        re-raised; RoutingError and MessageValidationError are not retryable.
        """
        headers = decode_headers(event.headers)
        errors = StackedErrorAggregator()
        errors.initialize(
            correlation_id=headers.get("correlation_id"),
            task_id=headers.get("id") or None,
        )

        inbound_trace = self._tracker.trace_manager.extract(headers)
        handler_name = self.name

        async with self._tracker.span(
            f"{self.name}.route",
            parent=inbound_trace,
            inherit=False,
            attributes={
                "messaging.topic": event.topic,
                "messaging.partition": event.partition,
                "messaging.offset": event.offset,
                "correlation_id": errors.scope.correlation_id,
                "trace.is_new_trace": inbound_trace is None,
            },
        ) as span:
            try:
                header = self._validate_base_header(headers, errors)
                span.set_attributes(
                    {"task.id": header.id, "task.status": header.status.value}
                )

                handler = self._handlers.get(header.status)
                if handler is None:
                    raise self._unroutable(header.status.value, headers, errors)

                routed_header = self._validate_status_header(header.status, headers, errors)
                span.add_event(
                    "routing.headers_validated",
                    {"schema": type(routed_header).__name__},
                )

                handler_name = handler.name
                span.set_attribute("handler", handler_name)
                logger.debug(
                    "Routing task-status message to %s",
                    handler_name,
                    extra={
                        "context": {
                            "task_id": header.id,
                            "status": header.status.value,
                            "correlation_id": errors.scope.correlation_id,
                            "processing_stage": "HANDLER_ROUTING",
                        }
                    },
                )

                message = RoutedMessage(event=event, header=routed_header, trace=span.context)
                result = await handler.handle(message, errors)

            except TaskProcessingError as e:
                self._report(e, errors, handler_name, e.level)
                await self._track_failure(e, errors, handler_name, e.retryable)
                raise
            except Exception as e:
                errors.add_frame(
                    ErrorLevel.ROOT,
                    handler_name,
                    "process",
                    f"Unexpected {type(e).__name__}: {e}",
                )
                self._report(e, errors, handler_name, ErrorLevel.ROOT)
                await self._track_failure(e, errors, handler_name, retryable=True)
                raise

            await self._tracker.track(
                "message_processed",
                handler_name,
                {"task_id": header.id, "status": header.status.value, **result},
            )

            return ProcessingOutcome(
                committed=True,
                status=header.status,
                task_id=header.id,
                trace_id=span.context.trace_id,
                handler=handler_name,
                result=result,
            )

    def _validate_base_header(
        self, headers: dict[str, str], errors: StackedErrorAggregator
    ) -> BaseTaskHeader:
        result = validate(BaseTaskHeader, headers)
        if result.valid:
            return result.value

        status = headers.get("status")
        unknown_status = any(
            v.field == "status" and v.received_value is not None
            for v in result.violations
        )
        if status and unknown_status:
            raise self._unroutable(status, headers, errors)

        errors.add_frame(
            ErrorLevel.VALIDATION,
            "BaseTaskHeader",
            "validate",
            f"Invalid routing headers: {result.error_message}",
            data={"violations": [v.field for v in result.violations]},
            expected="; ".join(
                f"{v.field}: {v.expected_constraint}" for v in result.violations
            ),
            actual={v.field: v.received_value for v in result.violations},
            action="Fix the message headers at the publisher; this message will not be retried",
        )
        raise RoutingError(
            f"Invalid headers: {result.error_message}",
            task_id=headers.get("id"),
            violations=result.violations,
        )

    def _validate_status_header(
        self, status: TaskStatus, headers: dict[str, str], errors: StackedErrorAggregator
    ):
        schema = _HEADER_SCHEMAS[status]
        result = validate(schema, headers)
        if result.valid:
            return result.value

        errors.add_validation_frames(result.violations, schema.__name__)
        raise MessageValidationError(
            f"Invalid {status.value}-task headers: {result.error_message}",
            violations=result.violations,
            schema_name=schema.__name__,
            task_id=headers.get("id"),
        )

    def _unroutable(
        self, status: str, headers: dict[str, str], errors: StackedErrorAggregator
    ) -> RoutingError:
        logger.error(
            "No handler registered for status: %s",
            status,
            extra={
                "context": {
                    "status": status,
                    "task_id": headers.get("id"),
                    "correlation_id": errors.scope.correlation_id,
                    "available_statuses": self.registered_statuses,
                    "processing_stage": "HANDLER_ROUTING",
                    "error_category": "VALIDATION_ERROR",
                }
            },
        )
        errors.add_frame(
            ErrorLevel.VALIDATION,
            self.name,
            "route",
            f"No handler for status: {status}",
            data={"available_statuses": self.registered_statuses},
            expected=" | ".join(self.registered_statuses),
            actual=status,
            action="Publish with a registered status value; this message will not be retried",
        )
        return RoutingError(
            f"No handler for status: {status}",
            task_id=headers.get("id"),
            violations=[
                FieldViolation(
                    field="status",
                    received_value=status,
                    expected_constraint=f"one of: {', '.join(self.registered_statuses)}",
                    message=f"No handler for status: {status}",
                )
            ],
        )

    async def _track_failure(
        self,
        error: Exception,
        errors: StackedErrorAggregator,
        handler_name: str,
        retryable: bool,
    ) -> None:
        await self._tracker.track(
            "processing_failed",
            handler_name,
            {
                "task_id": errors.scope.task_id,
                "error_type": type(error).__name__,
                "error": str(error),
                "retryable": retryable,
            },
        )

    @staticmethod
    def _report(
        error: BaseException,
        errors: StackedErrorAggregator,
        handler_name: str,
        level: ErrorLevel,
    ) -> None:
        rendered = errors.render(error, handler_name, _SEVERITY_BY_LEVEL[level])
        errors.emit(rendered, logger)
