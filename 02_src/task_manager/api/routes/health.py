"""Health API routes."""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from ...app import Application


class BreakerResponse(BaseModel):
    """Circuit breaker snapshot."""

    name: str
    state: str
    consecutive_failures: int
    consecutive_successes: int


class HealthResponse(BaseModel):
    """Response model for health."""

    status: str
    service: str
    topic: str
    registered_statuses: list[str]
    breaker: BreakerResponse
    telemetry: dict[str, Any]
    consumer: dict[str, Any]


def create_health_router(app: Application) -> APIRouter:
    """Create health router."""
    router = APIRouter(tags=["health"])

    @router.get("/health", response_model=HealthResponse)
    async def health() -> dict:
        """Report component state."""
        snapshot = app.breaker.snapshot()
        logs_pending, spans_pending = app.exporter.pending
        return {
            "status": "ok",
            "service": app.settings.service_name,
            "topic": app.settings.task_status_topic,
            "registered_statuses": app.router.registered_statuses,
            "breaker": {
                "name": snapshot.name,
                "state": snapshot.state.value,
                "consecutive_failures": snapshot.consecutive_failures,
                "consecutive_successes": snapshot.consecutive_successes,
            },
            "telemetry": {
                "enabled": app.exporter.enabled,
                "exported_batches": app.exporter.exported_batches,
                "dropped_batches": app.exporter.dropped_batches,
                "pending_logs": logs_pending,
                "pending_spans": spans_pending,
            },
            "consumer": app.consumer.stats(),
        }

    return router
