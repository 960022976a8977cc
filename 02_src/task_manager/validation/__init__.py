"""Validation module."""

from .pipeline import ValidationResult, decode_body, validate, violations_from_error
from .schemas import (
    BaseTaskHeader,
    CompletedTaskBody,
    CrawlRequestHeader,
    ErrorTaskBody,
    NewTaskBody,
    NewTaskHeader,
    TaskUpdateHeader,
)

__all__ = [
    "ValidationResult",
    "decode_body",
    "validate",
    "violations_from_error",
    "BaseTaskHeader",
    "CompletedTaskBody",
    "CrawlRequestHeader",
    "ErrorTaskBody",
    "NewTaskBody",
    "NewTaskHeader",
    "TaskUpdateHeader",
]
