"""Errors module."""

from .exceptions import (
    CrawlRequestPublishError,
    MessageValidationError,
    RoutingError,
    TaskNotFoundError,
    TaskPortError,
    TaskProcessingError,
)
from .stacked import (
    StackedErrorAggregator,
    categorize,
    determine_root_cause,
    validation_action,
)

__all__ = [
    "CrawlRequestPublishError",
    "MessageValidationError",
    "RoutingError",
    "TaskNotFoundError",
    "TaskPortError",
    "TaskProcessingError",
    "StackedErrorAggregator",
    "categorize",
    "determine_root_cause",
    "validation_action",
]
