"""Task data models exchanged with the task port."""

from dataclasses import dataclass
from datetime import datetime

from .events import TaskStatus


@dataclass
class Task:
    """A web-crawl task as returned by the task port."""

    id: str
    user_email: str
    user_query: str
    base_url: str
    status: TaskStatus
    created_at: datetime
    updated_at: datetime
    result: str | None = None
