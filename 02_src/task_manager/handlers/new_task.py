"""Handler for NEW task messages."""

from datetime import datetime, timezone

from ..errors import CrawlRequestPublishError, StackedErrorAggregator
from ..logging_config import get_logger
from ..models import ErrorLevel, Task
from ..ports import (
    ICrawlRequestPublisher,
    InMemoryCrawlRequestPublisher,
    ITaskPort,
    PublishedCrawlRequest,
)
from ..tracker import ITracker
from ..validation import NewTaskBody
from .common import RoutedMessage, call_task_port, validate_body

logger = get_logger(__name__)


class NewTaskHandler:
    """Creates a task from a NEW message and requests its crawl."""

    def __init__(
        self,
        task_port: ITaskPort,
        tracker: ITracker,
        crawl_publisher: ICrawlRequestPublisher | None = None,
    ):
        self._task_port = task_port
        self._tracker = tracker
        self._crawl_publisher = crawl_publisher or InMemoryCrawlRequestPublisher()

    @property
    def name(self) -> str:
        return "NewTaskHandler"

    async def handle(self, message: RoutedMessage, errors: StackedErrorAggregator) -> dict:
        """Validate the body, create the task and publish its crawl request."""
        async with self._tracker.span(
            f"{self.name}.process",
            attributes={"task.id": message.task_id, "task.status": message.status.value},
        ) as span:
            body = validate_body(NewTaskBody, message, errors)
            span.set_attributes(
                {"task.user_email": body.user_email, "task.base_url": body.base_url}
            )
            span.add_event("business.validation_successful", {"schema": "NewTaskBody"})

            task = await call_task_port(
                self._tracker,
                errors,
                "create_task",
                lambda: self._task_port.create_task(
                    body.user_email, body.user_query, body.base_url
                ),
                message.task_id,
            )
            span.set_attribute("task.created_id", task.id)

            await self._tracker.track(
                "task_created",
                f"handler:{self.name}",
                {
                    "message_task_id": message.task_id,
                    "task_id": task.id,
                    "user_email": task.user_email,
                    "base_url": task.base_url,
                },
            )
            logger.info(
                "Web-crawl task created: %s",
                task.id,
                extra={
                    "context": {
                        "task_id": message.task_id,
                        "created_task_id": task.id,
                        "processing_stage": "TASK_CREATION_SUCCESS",
                    }
                },
            )

            request = await self._publish_crawl_request(task, errors)

            return {
                "task_id": task.id,
                "status": task.status.value,
                "crawl_request_offset": request.offset,
            }

    async def _publish_crawl_request(
        self, task: Task, errors: StackedErrorAggregator
    ) -> PublishedCrawlRequest:
        topic = self._crawl_publisher.topic
        async with self._tracker.span(
            "CrawlRequestPublisher.publish",
            attributes={"task.id": task.id, "messaging.destination": topic},
        ) as span:
            headers = self._tracker.trace_manager.inject(
                {
                    "task_id": task.id,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
                span.context,
            )
            body = {
                "user_email": task.user_email,
                "user_query": task.user_query,
                "base_url": task.base_url,
            }

            try:
                request = await self._crawl_publisher.publish(headers, body)
            except Exception as e:
                errors.add_frame(
                    ErrorLevel.EXTERNAL_SERVICE,
                    "CrawlRequestPublisher",
                    "publish",
                    f"Failed to publish web-crawl request: {type(e).__name__}: {e}",
                    data={"task_id": task.id, "topic": topic},
                    action=f"Check the {topic} topic is reachable; the message will be redelivered",
                )
                raise CrawlRequestPublishError(
                    f"Failed to publish web-crawl request for task {task.id}: {e}",
                    task_id=task.id,
                ) from e

            span.set_attribute("messaging.offset", request.offset)

        logger.info(
            "Web-crawl request published to %s: task %s",
            topic,
            task.id,
            extra={"context": {"task_id": task.id, "offset": request.offset}},
        )
        return request
