"""Exception hierarchy for task-status message processing."""

from ..models import ErrorLevel, FieldViolation


class TaskProcessingError(Exception):
    """Base class for failures of one processing attempt."""

    level: ErrorLevel = ErrorLevel.ROOT
    retryable: bool = True

    def __init__(self, message: str, task_id: str | None = None):
        super().__init__(message)
        self.task_id = task_id


class RoutingError(TaskProcessingError):
    """Headers cannot be routed to a handler; the message is poison."""

    level = ErrorLevel.VALIDATION
    retryable = False

    def __init__(
        self,
        message: str,
        task_id: str | None = None,
        violations: list[FieldViolation] | None = None,
    ):
        super().__init__(message, task_id)
        self.violations = list(violations or [])


class MessageValidationError(TaskProcessingError):
    """Header or body violates its schema."""

    level = ErrorLevel.VALIDATION
    retryable = False

    def __init__(
        self,
        message: str,
        violations: list[FieldViolation],
        schema_name: str,
        task_id: str | None = None,
    ):
        super().__init__(message, task_id)
        self.violations = list(violations)
        self.schema_name = schema_name


class TaskNotFoundError(TaskProcessingError):
    """The task port has no task with the given id."""

    level = ErrorLevel.BUSINESS_LOGIC
    retryable = True


class TaskPortError(TaskProcessingError):
    """The task port is unreachable or failed."""

    level = ErrorLevel.EXTERNAL_SERVICE
    retryable = True


class CrawlRequestPublishError(TaskProcessingError):
    """The web-crawl request for a created task could not be published."""

    level = ErrorLevel.EXTERNAL_SERVICE
    retryable = True
