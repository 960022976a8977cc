"""Tests for the status handlers."""

import pytest

from task_manager.errors import (
    CrawlRequestPublishError,
    MessageValidationError,
    TaskNotFoundError,
)
from task_manager.handlers import (
    CompleteTaskHandler,
    ErrorTaskHandler,
    NewTaskHandler,
    RoutedMessage,
)
from task_manager.models import ErrorLevel, TaskStatus, TraceContext
from task_manager.ports import InMemoryCrawlRequestPublisher
from task_manager.tracing import TraceContextManager
from task_manager.validation import NewTaskHeader, TaskUpdateHeader

from conftest import PARENT_SPAN_ID, TRACE_ID, VALID_NEW_BODY, make_event, make_headers


def routed(status: str, body, task_id: str = "t1") -> RoutedMessage:
    headers = make_headers(task_id, status)
    schema = NewTaskHeader if status == "new" else TaskUpdateHeader
    return RoutedMessage(
        event=make_event(headers, body),
        header=schema.model_validate(headers),
        trace=TraceContextManager().continue_or_create(None),
    )


class TestNewTaskHandler:
    """Tests for NewTaskHandler."""

    @pytest.mark.asyncio
    async def test_creates_task(self, task_port, tracker, errors):
        """Test that a valid body creates a NEW task."""
        handler = NewTaskHandler(task_port, tracker)

        result = await handler.handle(routed("new", VALID_NEW_BODY), errors)

        task = await task_port.get_task(result["task_id"])
        assert task.status is TaskStatus.NEW
        assert task.base_url == "https://example.com"
        assert result["status"] == "new"
        assert errors.frames == []

    @pytest.mark.asyncio
    async def test_tracks_created_event(self, task_port, tracker, errors):
        """Test that task creation is tracked with both ids."""
        handler = NewTaskHandler(task_port, tracker)
        result = await handler.handle(routed("new", VALID_NEW_BODY), errors)

        events = tracker.get_trace_events(event_types=["task_created"])
        assert events[0].data["message_task_id"] == "t1"
        assert events[0].data["task_id"] == result["task_id"]

    @pytest.mark.asyncio
    async def test_span_names(self, task_port, tracker, errors):
        """Test that the handler and port call get their own spans."""
        handler = NewTaskHandler(task_port, tracker)
        await handler.handle(routed("new", VALID_NEW_BODY), errors)

        names = [s.name for s in tracker.get_spans()]
        assert names == [
            "TaskPort.create_task",
            "CrawlRequestPublisher.publish",
            "NewTaskHandler.process",
        ]

    @pytest.mark.asyncio
    async def test_publishes_crawl_request(self, task_port, tracker, errors):
        """Test that the created task is handed over to the web crawler."""
        publisher = InMemoryCrawlRequestPublisher()
        handler = NewTaskHandler(task_port, tracker, publisher)

        result = await handler.handle(routed("new", VALID_NEW_BODY), errors)

        [request] = await publisher.list_requests()
        assert request.topic == "requests-web-crawl"
        assert request.key == result["task_id"]
        assert request.headers["task_id"] == result["task_id"]
        assert request.body == {
            "user_email": VALID_NEW_BODY["user_email"],
            "user_query": VALID_NEW_BODY["user_query"],
            "base_url": VALID_NEW_BODY["base_url"],
        }
        assert result["crawl_request_offset"] == 0

    @pytest.mark.asyncio
    async def test_crawl_request_continues_inbound_trace(self, task_port, tracker, errors):
        """Test that the outbound traceparent keeps the inbound trace id."""
        publisher = InMemoryCrawlRequestPublisher()
        handler = NewTaskHandler(task_port, tracker, publisher)
        inbound = TraceContext(trace_id=TRACE_ID, span_id=PARENT_SPAN_ID)

        async with tracker.span("route", parent=inbound, inherit=False):
            await handler.handle(routed("new", VALID_NEW_BODY), errors)

        [request] = await publisher.list_requests()
        parsed = tracker.trace_manager.parse(request.headers["traceparent"])
        publish_span = [s for s in tracker.get_spans() if s.name == "CrawlRequestPublisher.publish"][0]
        assert parsed.trace_id == TRACE_ID
        assert parsed.span_id == publish_span.context.span_id
        assert parsed.span_id != PARENT_SPAN_ID

    @pytest.mark.asyncio
    async def test_crawl_request_failure_adds_external_frame(self, task_port, tracker, errors):
        """Test that a publish failure is an EXTERNAL_SERVICE frame and is retryable."""

        class BrokenPublisher:
            topic = "requests-web-crawl"

            async def publish(self, headers, body):
                raise ConnectionError("broker down")

        handler = NewTaskHandler(task_port, tracker, BrokenPublisher())

        with pytest.raises(CrawlRequestPublishError) as exc_info:
            await handler.handle(routed("new", VALID_NEW_BODY), errors)

        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        frame = errors.frames[-1]
        assert frame.level is ErrorLevel.EXTERNAL_SERVICE
        assert frame.component == "CrawlRequestPublisher"
        assert "broker down" in frame.message
        span = [s for s in tracker.get_spans() if s.name == "CrawlRequestPublisher.publish"][0]
        assert span.status == "error"
    @pytest.mark.asyncio
    async def test_invalid_body_adds_frames(self, task_port, tracker, errors):
        """Test that every body violation becomes a frame and nothing is created."""
        handler = NewTaskHandler(task_port, tracker)
        body = {"user_email": "nope", "user_query": "", "base_url": "ftp://x"}

        with pytest.raises(MessageValidationError) as exc_info:
            await handler.handle(routed("new", body), errors)

        assert exc_info.value.schema_name == "NewTaskBody"
        assert [f.level for f in errors.frames] == [ErrorLevel.VALIDATION] * 3
        assert await task_port.list_tasks() == []

    @pytest.mark.asyncio
    async def test_malformed_json(self, task_port, tracker, errors):
        """Test that a non-JSON body is a single validation frame."""
        handler = NewTaskHandler(task_port, tracker)

        with pytest.raises(MessageValidationError):
            await handler.handle(routed("new", "{broken"), errors)

        assert len(errors.frames) == 1
        assert errors.frames[0].data["field"] == "body"


class TestCompleteTaskHandler:
    """Tests for CompleteTaskHandler."""

    @pytest.mark.asyncio
    async def test_completes_existing_task(self, task_port, tracker, errors):
        """Test that an existing task is marked completed with its result."""
        task = await task_port.create_task("a@example.com", "q", "https://example.com")
        handler = CompleteTaskHandler(task_port, tracker)

        result = await handler.handle(routed("completed", {"crawl_result": "3 pages"}, task.id), errors)

        stored = await task_port.get_task(task.id)
        assert stored.status is TaskStatus.COMPLETED
        assert stored.result == "3 pages"
        assert result == {"task_id": task.id, "status": "completed"}

    @pytest.mark.asyncio
    async def test_unknown_task(self, task_port, tracker, errors):
        """Test that a missing task yields one BUSINESS_LOGIC frame naming it."""
        handler = CompleteTaskHandler(task_port, tracker)

        with pytest.raises(TaskNotFoundError):
            await handler.handle(routed("completed", {"crawl_result": "3 pages"}), errors)

        assert len(errors.frames) == 1
        frame = errors.frames[0]
        assert frame.level is ErrorLevel.BUSINESS_LOGIC
        assert "t1" in frame.message


class TestErrorTaskHandler:
    """Tests for ErrorTaskHandler."""

    @pytest.mark.asyncio
    async def test_marks_task_errored(self, task_port, tracker, errors):
        """Test that an existing task moves to ERROR with the message."""
        task = await task_port.create_task("a@example.com", "q", "https://example.com")
        handler = ErrorTaskHandler(task_port, tracker)

        await handler.handle(routed("error", {"error": "Crawler timed out"}, task.id), errors)

        stored = await task_port.get_task(task.id)
        assert stored.status is TaskStatus.ERROR
        assert stored.result == "Crawler timed out"

    @pytest.mark.asyncio
    async def test_missing_error_field(self, task_port, tracker, errors):
        """Test that the error field is required."""
        handler = ErrorTaskHandler(task_port, tracker)

        with pytest.raises(MessageValidationError) as exc_info:
            await handler.handle(routed("error", {}), errors)

        assert exc_info.value.violations[0].field == "error"
        assert exc_info.value.violations[0].expected_constraint == "required"
