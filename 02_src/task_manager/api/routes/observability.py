"""Observability API routes."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Query
from pydantic import BaseModel

from ...app import Application


class TraceEventResponse(BaseModel):
    """Response model for trace event."""

    id: str
    event_type: str
    actor: str
    data: dict[str, Any]
    timestamp: datetime
    trace_id: str | None = None
    span_id: str | None = None


class SpanResponse(BaseModel):
    """Response model for a finished span."""

    name: str
    trace_id: str
    span_id: str
    parent_span_id: str | None = None
    status: str
    status_message: str | None = None
    attributes: dict[str, Any]
    events: list[dict[str, Any]]
    start_time: datetime
    end_time: datetime | None = None


def create_observability_router(app: Application) -> APIRouter:
    """Create observability router."""
    router = APIRouter(prefix="/api", tags=["observability"])

    @router.get("/trace-events", response_model=list[TraceEventResponse])
    async def get_trace_events(
        limit: int = Query(100, ge=1, le=1000),
        event_type: str | None = Query(None, description="Filter by event type"),
        actor: str | None = Query(None, description="Filter by actor"),
    ) -> list[dict]:
        """Get trace events with optional filters."""
        event_types = [event_type] if event_type else None
        events = app.tracker.get_trace_events(
            event_types=event_types,
            actor=actor,
            limit=limit,
        )
        return [
            {
                "id": e.id,
                "event_type": e.event_type,
                "actor": e.actor,
                "data": e.data,
                "timestamp": e.timestamp,
                "trace_id": e.trace_id,
                "span_id": e.span_id,
            }
            for e in events
        ]

    @router.get("/spans", response_model=list[SpanResponse])
    async def get_spans(
        trace_id: str | None = Query(None, description="Filter by trace id"),
        limit: int = Query(100, ge=1, le=1000),
    ) -> list[dict]:
        """Get finished spans, optionally for one trace."""
        return [
            {
                "name": s.name,
                "trace_id": s.context.trace_id,
                "span_id": s.context.span_id,
                "parent_span_id": s.context.parent_span_id,
                "status": s.status,
                "status_message": s.status_message,
                "attributes": s.attributes,
                "events": [
                    {"name": ev.name, "timestamp": ev.timestamp.isoformat(), "attributes": ev.attributes}
                    for ev in s.events
                ],
                "start_time": s.start_time,
                "end_time": s.end_time,
            }
            for s in app.tracker.get_spans(trace_id=trace_id, limit=limit)
        ]

    return router
