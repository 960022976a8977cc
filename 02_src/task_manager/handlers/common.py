"""Helpers shared by the status handlers."""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol, TypeVar

from pydantic import BaseModel

from ..errors import (
    MessageValidationError,
    StackedErrorAggregator,
    TaskNotFoundError,
    TaskPortError,
)
from ..models import ErrorLevel, InboundEvent, Task, TaskStatus, TraceContext
from ..ports import ITaskPort
from ..tracker import ITracker
from ..validation import decode_body, validate
from ..validation.schemas import BaseTaskHeader

ModelT = TypeVar("ModelT", bound=BaseModel)
T = TypeVar("T")


@dataclass(frozen=True)
class RoutedMessage:
    """An inbound event whose headers passed routing validation."""

    event: InboundEvent
    header: BaseTaskHeader
    trace: TraceContext

    @property
    def task_id(self) -> str:
        return self.header.id

    @property
    def status(self) -> TaskStatus:
        return self.header.status


class IStatusHandler(Protocol):
    """Processes messages of one task status."""

    @property
    def name(self) -> str:
        """Handler name used in logs, spans and error headlines."""
        ...

    async def handle(self, message: RoutedMessage, errors: StackedErrorAggregator) -> dict:
        """Validate the body and apply it through the task port."""
        ...


def validate_body(
    schema: type[ModelT],
    message: RoutedMessage,
    errors: StackedErrorAggregator,
) -> ModelT:
    """Decode and validate the message body, recording every violation."""
    decoded = decode_body(message.event.body)
    result = decoded if not decoded.valid else validate(schema, decoded.value)

    if not result.valid:
        errors.add_validation_frames(result.violations, schema.__name__)
        raise MessageValidationError(
            f"Invalid {schema.__name__}: {result.error_message}",
            violations=result.violations,
            schema_name=schema.__name__,
            task_id=message.task_id,
        )

    return result.value


async def call_task_port(
    tracker: ITracker,
    errors: StackedErrorAggregator,
    operation: str,
    call: Callable[[], Awaitable[T]],
    task_id: str,
    attributes: dict[str, Any] | None = None,
) -> T:
    """Invoke a task port operation in its own span, wrapping failures."""
    span_attributes = {"task.id": task_id, "task_port.operation": operation}
    span_attributes.update(attributes or {})

    async with tracker.span(f"TaskPort.{operation}", attributes=span_attributes):
        try:
            return await call()
        except Exception as e:
            errors.add_frame(
                ErrorLevel.EXTERNAL_SERVICE,
                "TaskPort",
                operation,
                f"Task port {operation} failed: {type(e).__name__}: {e}",
                data={"task_id": task_id, **(attributes or {})},
                action="Check the task service is reachable; the message will be redelivered",
            )
            raise TaskPortError(
                f"Task port {operation} failed for task {task_id}: {e}",
                task_id=task_id,
            ) from e


async def apply_status_update(
    port: ITaskPort,
    tracker: ITracker,
    errors: StackedErrorAggregator,
    handler_name: str,
    task_id: str,
    status: TaskStatus,
    payload: str,
) -> Task:
    """Move an existing task to COMPLETED/ERROR; missing tasks are a business error."""
    task = await call_task_port(
        tracker,
        errors,
        "update_task_status",
        lambda: port.update_task_status(task_id, status, payload),
        task_id,
        {"task.status": status.value},
    )

    if task is None:
        errors.add_frame(
            ErrorLevel.BUSINESS_LOGIC,
            handler_name,
            "update_task_status",
            f"Task not found: {task_id}",
            data={"task_id": task_id, "status": status.value},
            expected="existing task",
            actual=None,
            action=(
                f"Verify a '{TaskStatus.NEW.value}' event for task {task_id} "
                "was processed before this update"
            ),
        )
        raise TaskNotFoundError(f"Task not found: {task_id}", task_id=task_id)

    return task
