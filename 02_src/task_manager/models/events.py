"""Inbound event data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class TaskStatus(str, Enum):
    """Task lifecycle status; routing discriminator of the task-status topic."""

    NEW = "new"
    COMPLETED = "completed"
    ERROR = "error"


class TaskType(str, Enum):
    """Kinds of tasks carried on the task-status topic."""

    WEB_CRAWL = "web-crawl"


@dataclass(frozen=True)
class InboundEvent:
    """A single record delivered by the consumer runtime."""

    topic: str
    partition: int
    offset: int
    key: bytes | None
    headers: dict[str, bytes | str | list]
    body: bytes
    timestamp: datetime | None = None


@dataclass(frozen=True)
class BaseHeader:
    """Routing metadata shared by every task-status message."""

    id: str
    status: TaskStatus
    timestamp: datetime


@dataclass
class ProcessingOutcome:
    """Result of one successful processing attempt."""

    committed: bool
    status: TaskStatus
    task_id: str
    trace_id: str
    handler: str
    result: dict = field(default_factory=dict)
