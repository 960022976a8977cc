"""Handler for ERROR task messages."""

from ..errors import StackedErrorAggregator
from ..logging_config import get_logger
from ..models import TaskStatus
from ..ports import ITaskPort
from ..tracker import ITracker
from ..validation import ErrorTaskBody
from .common import RoutedMessage, apply_status_update, validate_body

logger = get_logger(__name__)


class ErrorTaskHandler:
    """Marks a task as failed with the reported error."""

    def __init__(self, task_port: ITaskPort, tracker: ITracker):
        self._task_port = task_port
        self._tracker = tracker

    @property
    def name(self) -> str:
        return "ErrorTaskHandler"

    async def handle(self, message: RoutedMessage, errors: StackedErrorAggregator) -> dict:
        async with self._tracker.span(
            f"{self.name}.process",
            attributes={"task.id": message.task_id, "task.status": message.status.value},
        ) as span:
            body = validate_body(ErrorTaskBody, message, errors)
            span.set_attribute("task.error", body.error[:200])

            task = await apply_status_update(
                self._task_port,
                self._tracker,
                errors,
                self.name,
                message.task_id,
                TaskStatus.ERROR,
                body.error,
            )

            await self._tracker.track(
                "task_errored",
                f"handler:{self.name}",
                {"task_id": task.id, "error": body.error[:200]},
            )
            logger.info(
                "Web-crawl task marked as error: %s",
                task.id,
                extra={
                    "context": {
                        "task_id": task.id,
                        "status": task.status.value,
                        "processing_stage": "TASK_ERROR_RECORDED",
                    }
                },
            )

            return {"task_id": task.id, "status": task.status.value}
