"""Tests for the in-memory ports."""

import pytest

from task_manager.models import TaskStatus
from task_manager.ports import InMemoryCrawlRequestPublisher, InMemoryTaskPort

from conftest import TRACEPARENT, VALID_NEW_BODY


class TestInMemoryTaskPort:
    @pytest.mark.asyncio
    async def test_update_unknown_task(self):
        port = InMemoryTaskPort()
        assert await port.update_task_status("missing", TaskStatus.COMPLETED, "x") is None

    @pytest.mark.asyncio
    async def test_create_then_update(self):
        port = InMemoryTaskPort()
        task = await port.create_task("a@b.com", "q", "https://x.com")

        updated = await port.update_task_status(task.id, TaskStatus.ERROR, "boom")

        assert updated.status is TaskStatus.ERROR
        assert updated.result == "boom"


class TestInMemoryCrawlRequestPublisher:
    """Tests for InMemoryCrawlRequestPublisher."""

    @pytest.mark.asyncio
    async def test_offsets_and_headers(self):
        """Test that requests are appended in order with their headers."""
        publisher = InMemoryCrawlRequestPublisher(topic="crawl")
        headers = {
            "task_id": "t1",
            "timestamp": "2024-05-01T12:00:00+00:00",
            "traceparent": TRACEPARENT,
        }

        first = await publisher.publish(headers, VALID_NEW_BODY)
        second = await publisher.publish({**headers, "task_id": "t2"}, VALID_NEW_BODY)

        assert (first.offset, second.offset) == (0, 1)
        assert first.topic == "crawl"
        assert first.headers["traceparent"] == TRACEPARENT
        assert [r.key for r in await publisher.list_requests()] == ["t1", "t2"]

    @pytest.mark.asyncio
    async def test_rejects_invalid_request(self):
        """Test that an invalid request is refused and not stored."""
        publisher = InMemoryCrawlRequestPublisher()

        with pytest.raises(ValueError, match="Invalid crawl request"):
            await publisher.publish({"task_id": "t1"}, VALID_NEW_BODY)

        assert await publisher.list_requests() == []

    @pytest.mark.asyncio
    async def test_clear(self):
        publisher = InMemoryCrawlRequestPublisher()
        await publisher.publish({"task_id": "t1", "timestamp": "2024-05-01T12:00:00Z"}, VALID_NEW_BODY)
        await publisher.clear()
        assert await publisher.list_requests() == []
