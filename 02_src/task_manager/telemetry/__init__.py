"""Telemetry module."""

from .exporter import (
    TelemetryExportError,
    TelemetryExporter,
    TelemetryLogHandler,
    otel_attributes,
    otel_value,
)

__all__ = [
    "TelemetryExportError",
    "TelemetryExporter",
    "TelemetryLogHandler",
    "otel_attributes",
    "otel_value",
]
