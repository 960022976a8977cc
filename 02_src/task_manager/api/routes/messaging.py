"""Messaging API routes."""

import json
from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ...app import Application
from ...ports import InMemoryCrawlRequestPublisher


class MessageRequest(BaseModel):
    """Request model for publishing a task-status message."""

    key: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    body: dict[str, Any] | str = ""


class MessageResponse(BaseModel):
    """Where the message was appended."""

    topic: str
    partition: int
    offset: int


class DeadLetterResponse(BaseModel):
    """Response model for a dead-lettered message."""

    topic: str
    partition: int
    offset: int
    key: str | None
    headers: dict[str, str]
    error_type: str
    error: str
    attempts: int
    retryable: bool
    timestamp: datetime


class CrawlRequestResponse(BaseModel):
    """Response model for a published web-crawl request."""

    topic: str
    key: str
    offset: int
    headers: dict[str, str]
    body: dict[str, Any]
    timestamp: datetime


def _text(value: bytes | str | None) -> str | None:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def create_messaging_router(app: Application) -> APIRouter:
    """Create messaging router."""
    router = APIRouter(prefix="/api", tags=["messaging"])

    @router.post("/messages", response_model=MessageResponse, status_code=202)
    async def publish_message(request: MessageRequest) -> dict:
        """Publish a message to the task-status topic."""
        body = request.body if isinstance(request.body, str) else json.dumps(request.body)
        try:
            event = await app.consumer.publish(
                app.settings.task_status_topic,
                headers=request.headers,
                body=body,
                key=request.key,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"topic": event.topic, "partition": event.partition, "offset": event.offset}

    @router.get("/dead-letters", response_model=list[DeadLetterResponse])
    async def get_dead_letters() -> list[dict]:
        """List messages that will not be delivered again."""
        return [
            {
                "topic": letter.event.topic,
                "partition": letter.event.partition,
                "offset": letter.event.offset,
                "key": _text(letter.event.key),
                "headers": {k: _text(v) for k, v in letter.event.headers.items()},
                "error_type": letter.error_type,
                "error": letter.error,
                "attempts": letter.attempts,
                "retryable": letter.retryable,
                "timestamp": letter.timestamp,
            }
            for letter in app.consumer.dead_letters
        ]

    @router.get("/crawl-requests", response_model=list[CrawlRequestResponse])
    async def get_crawl_requests() -> list[dict]:
        """List web-crawl requests published for created tasks."""
        publisher = app.crawl_publisher
        if not isinstance(publisher, InMemoryCrawlRequestPublisher):
            raise HTTPException(status_code=404, detail="Crawl requests are not kept in memory")
        return [
            {
                "topic": request.topic,
                "key": request.key,
                "offset": request.offset,
                "headers": request.headers,
                "body": request.body,
                "timestamp": request.timestamp,
            }
            for request in await publisher.list_requests()
        ]

    return router
