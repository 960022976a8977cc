"""Header and body schemas of the task-status topic."""

from datetime import datetime
from typing import Annotated, Any

from pydantic import (
    AnyUrl,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    UrlConstraints,
    ValidationError,
    field_validator,
)
from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError

from ..models import TaskStatus, TaskType

TASK_ID_PATTERN = r"^[A-Za-z0-9._:-]+$"

_HTTP_URL = TypeAdapter(
    Annotated[AnyUrl, UrlConstraints(allowed_schemes=["http", "https"])]
)


class BaseTaskHeader(BaseModel):
    """Routing metadata every task-status message must carry."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = Field(min_length=1, max_length=255, pattern=TASK_ID_PATTERN)
    status: TaskStatus
    timestamp: datetime
    task_type: TaskType | None = None
    correlation_id: str | None = Field(default=None, max_length=255)
    source: str | None = Field(default=None, max_length=50)
    version: str | None = Field(default=None, max_length=50)


class NewTaskHeader(BaseTaskHeader):
    """Header of a NEW task: no prior-status fields allowed."""

    previous_status: Any = None
    result: Any = None
    finished_at: Any = None

    @field_validator("status")
    @classmethod
    def _status_is_new(cls, value: TaskStatus) -> TaskStatus:
        if value is not TaskStatus.NEW:
            raise PydanticCustomError(
                "status_mismatch",
                "status must be {expected} for a new task",
                {"expected": "'new'"},
            )
        return value

    @field_validator("previous_status", "result", "finished_at")
    @classmethod
    def _absent(cls, value: Any) -> Any:
        if value is not None:
            raise PydanticCustomError(
                "forbidden", "prior-status field must be absent for a new task"
            )
        return value


class TaskUpdateHeader(BaseTaskHeader):
    """Header of a COMPLETED/ERROR update for an existing task."""

    previous_status: TaskStatus | None = None

    @field_validator("status")
    @classmethod
    def _status_is_update(cls, value: TaskStatus) -> TaskStatus:
        if value not in (TaskStatus.COMPLETED, TaskStatus.ERROR):
            raise PydanticCustomError(
                "status_mismatch",
                "status must be {expected} for a task update",
                {"expected": "'completed' or 'error'"},
            )
        return value


class NewTaskBody(BaseModel):
    """Body of a NEW task message."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    user_email: str = Field(max_length=255)
    user_query: str = Field(min_length=1, max_length=1000)
    base_url: str = Field(max_length=2048)

    @field_validator("user_email")
    @classmethod
    def _email(cls, value: str) -> str:
        try:
            validate_email(value)
        except PydanticCustomError as e:
            raise PydanticCustomError(
                "email", "value is not a valid email address"
            ) from e
        return value

    @field_validator("base_url")
    @classmethod
    def _url(cls, value: str) -> str:
        try:
            _HTTP_URL.validate_python(value)
        except ValidationError as e:
            raise PydanticCustomError("url", "value is not a valid http(s) URL") from e
        return value


class CompletedTaskBody(BaseModel):
    """Body of a COMPLETED task message."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    crawl_result: str = Field(min_length=1, max_length=10_000)


class ErrorTaskBody(BaseModel):
    """Body of an ERROR task message."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    error: str = Field(min_length=1, max_length=1000)


class CrawlRequestHeader(BaseModel):
    """Header of an outbound web-crawl request."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    task_id: str = Field(min_length=1, max_length=255, pattern=TASK_ID_PATTERN)
    timestamp: datetime
    traceparent: str | None = Field(default=None, max_length=255)
    tracestate: str | None = Field(default=None, max_length=255)
