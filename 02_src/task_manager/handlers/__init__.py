"""Status handlers module."""

from .common import IStatusHandler, RoutedMessage
from .complete_task import CompleteTaskHandler
from .error_task import ErrorTaskHandler
from .new_task import NewTaskHandler

__all__ = [
    "IStatusHandler",
    "RoutedMessage",
    "CompleteTaskHandler",
    "ErrorTaskHandler",
    "NewTaskHandler",
]
