"""Schema validation returning every field violation at once."""

import json
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from ..models import FieldViolation

T = TypeVar("T")
ModelT = TypeVar("ModelT", bound=BaseModel)

ROOT_FIELD = "<root>"


@dataclass(frozen=True)
class ValidationResult(Generic[T]):
    """Either a validated value or the list of violations found."""

    valid: bool
    value: T | None = None
    violations: list[FieldViolation] = field(default_factory=list)

    @classmethod
    def ok(cls, value: T) -> "ValidationResult[T]":
        return cls(valid=True, value=value)

    @classmethod
    def failed(cls, violations: list[FieldViolation]) -> "ValidationResult[T]":
        return cls(valid=False, violations=list(violations))

    @property
    def error_message(self) -> str:
        """One-line summary: 'field: message; field: message'."""
        return "; ".join(f"{v.field}: {v.message}" for v in self.violations)


def _field_name(loc: tuple) -> str:
    if not loc:
        return ROOT_FIELD
    return ".".join(str(part) for part in loc)


def _expected_constraint(error: dict) -> str:
    """Describe the constraint a pydantic error reports as broken."""
    error_type = error["type"]
    ctx = error.get("ctx") or {}

    if error_type == "missing":
        return "required"
    if error_type == "string_too_short":
        return f"length >= {ctx.get('min_length')} characters"
    if error_type == "string_too_long":
        return f"length <= {ctx.get('max_length')} characters"
    if error_type == "string_pattern_mismatch":
        return f"pattern {ctx.get('pattern')}"
    if error_type in ("enum", "literal_error"):
        return f"one of: {ctx.get('expected')}"
    if error_type == "email":
        return "email address"
    if error_type == "url" or error_type.startswith("url_"):
        return "http(s) URL"
    if error_type.startswith("datetime") or error_type.startswith("date_"):
        return "ISO-8601 timestamp"
    if error_type == "forbidden":
        return "absent"
    if error_type == "status_mismatch":
        return f"status {ctx.get('expected')}"
    if error_type.endswith("_type"):
        return f"type {error_type[: -len('_type')]}"
    return error_type


def violations_from_error(error: ValidationError) -> list[FieldViolation]:
    """Convert a pydantic ValidationError into FieldViolations."""
    violations = []
    for item in error.errors(include_url=False):
        received = None if item["type"] == "missing" else item.get("input")
        violations.append(
            FieldViolation(
                field=_field_name(item.get("loc", ())),
                received_value=received,
                expected_constraint=_expected_constraint(item),
                message=item["msg"],
            )
        )
    return violations


def validate(schema: type[ModelT], data: Any) -> ValidationResult[ModelT]:
    """
    Validate `data` against a pydantic schema.

    Pure: never logs and never raises for invalid input. All violations are
    returned, not just the first.
    """
    try:
        value = schema.model_validate(data)
    except ValidationError as e:
        return ValidationResult.failed(violations_from_error(e))
    return ValidationResult.ok(value)


def decode_body(raw: bytes | str | None) -> ValidationResult[dict]:
    """Decode a JSON object message body."""
    if raw is None or raw == b"" or raw == "":
        return ValidationResult.failed(
            [
                FieldViolation(
                    field="body",
                    received_value=None,
                    expected_constraint="JSON object",
                    message="Message body is empty",
                )
            ]
        )

    try:
        text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
        payload = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        return ValidationResult.failed(
            [
                FieldViolation(
                    field="body",
                    received_value=raw[:200],
                    expected_constraint="JSON object",
                    message=f"Message body is not valid JSON: {e}",
                )
            ]
        )

    if not isinstance(payload, dict):
        return ValidationResult.failed(
            [
                FieldViolation(
                    field="body",
                    received_value=payload,
                    expected_constraint="JSON object",
                    message=f"Message body must be a JSON object, got {type(payload).__name__}",
                )
            ]
        )

    return ValidationResult.ok(payload)
