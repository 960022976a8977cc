"""Handler for COMPLETED task messages."""

from ..errors import StackedErrorAggregator
from ..logging_config import get_logger
from ..models import TaskStatus
from ..ports import ITaskPort
from ..tracker import ITracker
from ..validation import CompletedTaskBody
from .common import RoutedMessage, apply_status_update, validate_body

logger = get_logger(__name__)


class CompleteTaskHandler:
    """Marks a task completed with its crawl result."""

    def __init__(self, task_port: ITaskPort, tracker: ITracker):
        self._task_port = task_port
        self._tracker = tracker

    @property
    def name(self) -> str:
        return "CompleteTaskHandler"

    async def handle(self, message: RoutedMessage, errors: StackedErrorAggregator) -> dict:
        async with self._tracker.span(
            f"{self.name}.process",
            attributes={"task.id": message.task_id, "task.status": message.status.value},
        ) as span:
            body = validate_body(CompletedTaskBody, message, errors)
            span.set_attribute("task.result_length", len(body.crawl_result))

            task = await apply_status_update(
                self._task_port,
                self._tracker,
                errors,
                self.name,
                message.task_id,
                TaskStatus.COMPLETED,
                body.crawl_result,
            )

            await self._tracker.track(
                "task_completed",
                f"handler:{self.name}",
                {"task_id": task.id, "result_length": len(body.crawl_result)},
            )
            logger.info(
                "Web-crawl task completed: %s",
                task.id,
                extra={
                    "context": {
                        "task_id": task.id,
                        "status": task.status.value,
                        "processing_stage": "TASK_COMPLETION_SUCCESS",
                    }
                },
            )

            return {"task_id": task.id, "status": task.status.value}
