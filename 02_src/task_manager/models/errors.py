"""Error chain and validation data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorLevel(str, Enum):
    """Layer of the system an error frame belongs to."""

    VALIDATION = "VALIDATION"
    BUSINESS_LOGIC = "BUSINESS_LOGIC"
    DATABASE = "DATABASE"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE"
    ROOT = "ROOT"


class ErrorCategory(str, Enum):
    """Coarse error classification used for log and metric labels."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    BUSINESS_LOGIC_ERROR = "BUSINESS_LOGIC_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class FieldViolation:
    """One broken constraint on one field."""

    field: str
    received_value: Any
    expected_constraint: str
    message: str


@dataclass
class ErrorFrame:
    """One layer of context in an error chain."""

    level: ErrorLevel
    component: str
    operation: str
    message: str
    data: Any = None
    expected: Any = None
    actual: Any = None
    action: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class ErrorScope:
    """Identity of one processing attempt's error chain."""

    correlation_id: str
    task_id: str | None = None


@dataclass(frozen=True)
class RenderedError:
    """Human-readable diagnostic built from an error chain."""

    headline: str
    chain_lines: list[str]
    correlation_id: str
    task_id: str | None
    category: ErrorCategory
    severity: Severity
    root_cause: str
    guidance: str
