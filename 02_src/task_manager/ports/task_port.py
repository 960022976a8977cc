"""Task port: the persistence collaborator the status handlers call."""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Protocol

from ..models import Task, TaskStatus


class ITaskPort(Protocol):
    """Task lifecycle operations backed by an external task service."""

    async def create_task(self, user_email: str, user_query: str, base_url: str) -> Task:
        """Create a NEW task."""
        ...

    async def update_task_status(
        self, task_id: str, status: TaskStatus, payload: str | None = None
    ) -> Task | None:
        """Move a task to `status`; None when the task does not exist."""
        ...


class InMemoryTaskPort:
    """In-process task port used by the simulator and in tests."""

    def __init__(self):
        self._tasks: dict[str, Task] = {}
        self._lock = asyncio.Lock()

    async def create_task(self, user_email: str, user_query: str, base_url: str) -> Task:
        """Create a NEW task with a generated id."""
        now = datetime.now(timezone.utc)
        task = Task(
            id=str(uuid.uuid4()),
            user_email=user_email,
            user_query=user_query,
            base_url=base_url,
            status=TaskStatus.NEW,
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            self._tasks[task.id] = task
        return task

    async def update_task_status(
        self, task_id: str, status: TaskStatus, payload: str | None = None
    ) -> Task | None:
        """Set status and result; None when the task is unknown."""
        async with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return None
            task.status = status
            task.result = payload
            task.updated_at = datetime.now(timezone.utc)
            return task

    async def get_task(self, task_id: str) -> Task | None:
        async with self._lock:
            return self._tasks.get(task_id)

    async def list_tasks(self) -> list[Task]:
        async with self._lock:
            return list(self._tasks.values())

    async def clear(self) -> None:
        """Drop every task."""
        async with self._lock:
            self._tasks.clear()
