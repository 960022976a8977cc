"""Crawl request port: hands created tasks over to the web crawler."""

import asyncio
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from ..validation import CrawlRequestHeader, NewTaskBody, validate

DEFAULT_CRAWL_REQUEST_TOPIC = "requests-web-crawl"


@dataclass(frozen=True)
class PublishedCrawlRequest:
    """A web-crawl request accepted by the publisher."""

    topic: str
    key: str
    headers: dict[str, str]
    body: dict
    offset: int
    timestamp: datetime


class ICrawlRequestPublisher(Protocol):
    """Publishes web-crawl requests for newly created tasks."""

    @property
    def topic(self) -> str:
        """Destination topic."""
        ...

    async def publish(self, headers: dict[str, str], body: dict) -> PublishedCrawlRequest:
        """Publish one request keyed by its task_id; raises when rejected."""
        ...


class InMemoryCrawlRequestPublisher:
    """Keeps published requests in memory for the simulator and tests."""

    def __init__(self, topic: str = DEFAULT_CRAWL_REQUEST_TOPIC, max_requests: int = 1000):
        self._topic = topic
        self._requests: deque[PublishedCrawlRequest] = deque(maxlen=max_requests)
        self._next_offset = 0
        self._lock = asyncio.Lock()

    @property
    def topic(self) -> str:
        return self._topic

    async def publish(self, headers: dict[str, str], body: dict) -> PublishedCrawlRequest:
        """Validate and append the request."""
        for schema, value in ((CrawlRequestHeader, headers), (NewTaskBody, body)):
            result = validate(schema, value)
            if not result.valid:
                raise ValueError(f"Invalid crawl request: {result.error_message}")

        async with self._lock:
            request = PublishedCrawlRequest(
                topic=self._topic,
                key=headers["task_id"],
                headers=dict(headers),
                body=dict(body),
                offset=self._next_offset,
                timestamp=datetime.now(timezone.utc),
            )
            self._next_offset += 1
            self._requests.append(request)
        return request

    async def list_requests(self) -> list[PublishedCrawlRequest]:
        async with self._lock:
            return list(self._requests)

    async def clear(self) -> None:
        async with self._lock:
            self._requests.clear()
