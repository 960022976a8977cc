"""Ports module."""

from .crawl_request_publisher import (
    DEFAULT_CRAWL_REQUEST_TOPIC,
    ICrawlRequestPublisher,
    InMemoryCrawlRequestPublisher,
    PublishedCrawlRequest,
)
from .task_port import InMemoryTaskPort, ITaskPort

__all__ = [
    "DEFAULT_CRAWL_REQUEST_TOPIC",
    "ICrawlRequestPublisher",
    "InMemoryCrawlRequestPublisher",
    "PublishedCrawlRequest",
    "InMemoryTaskPort",
    "ITaskPort",
]
