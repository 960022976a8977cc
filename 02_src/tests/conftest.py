"""Pytest configuration and fixtures."""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from task_manager.models import InboundEvent  # noqa: E402

TRACE_ID = "4bf92f3577b34da6a3ce929d0e0e4736"
PARENT_SPAN_ID = "00f067aa0ba902b7"
TRACEPARENT = f"00-{TRACE_ID}-{PARENT_SPAN_ID}-01"

VALID_NEW_BODY = {
    "user_email": "alice@example.com",
    "user_query": "Collect pricing pages",
    "base_url": "https://example.com",
}


def make_headers(task_id: str = "t1", status: str = "new", **extra) -> dict:
    """Task-status headers as a producer would send them."""
    headers = {
        "id": task_id,
        "status": status,
        "timestamp": "2024-05-01T12:00:00Z",
    }
    headers.update(extra)
    return {k: v for k, v in headers.items() if v is not None}


def make_event(
    headers: dict | None = None,
    body: dict | str | bytes | None = None,
    offset: int = 0,
    partition: int = 0,
) -> InboundEvent:
    """Build an InboundEvent with bytes headers and body."""
    if body is None:
        body = VALID_NEW_BODY
    if isinstance(body, dict):
        body = json.dumps(body)
    if isinstance(body, str):
        body = body.encode("utf-8")
    return InboundEvent(
        topic="task-status",
        partition=partition,
        offset=offset,
        key=None,
        headers={k: v.encode("utf-8") for k, v in (headers or make_headers()).items()},
        body=body,
        timestamp=datetime.now(timezone.utc),
    )


@pytest.fixture
def tracker():
    """Create Tracker without a sink."""
    from task_manager.tracker import Tracker

    return Tracker()


@pytest.fixture
def task_port():
    """Create in-memory task port."""
    from task_manager.ports import InMemoryTaskPort

    return InMemoryTaskPort()


@pytest.fixture
def errors():
    """Create an initialized error aggregator."""
    from task_manager.errors import StackedErrorAggregator

    aggregator = StackedErrorAggregator()
    aggregator.initialize(correlation_id="corr-1", task_id="t1")
    return aggregator


@pytest.fixture
def router(tracker, task_port):
    """Create MessageRouter with all status handlers."""
    from task_manager.handlers import CompleteTaskHandler, ErrorTaskHandler, NewTaskHandler
    from task_manager.models import TaskStatus
    from task_manager.routing import MessageRouter

    return MessageRouter(
        tracker=tracker,
        handlers={
            TaskStatus.NEW: NewTaskHandler(task_port, tracker),
            TaskStatus.COMPLETED: CompleteTaskHandler(task_port, tracker),
            TaskStatus.ERROR: ErrorTaskHandler(task_port, tracker),
        },
    )


@pytest.fixture
def settings(tmp_path):
    """Settings with telemetry disabled and fast retries."""
    from task_manager.config import Settings

    return Settings(
        log_file=tmp_path / "test.log",
        enable_otel=False,
        consumer_partitions=2,
        consumer_max_attempts=2,
        consumer_retry_backoff_seconds=0.0,
    )


@pytest.fixture
def mock_logger():
    """Create mock logger."""
    logger = logging.getLogger("test")
    logger.setLevel(logging.DEBUG)
    return logger
