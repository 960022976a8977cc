"""Task-status consumer: routing, validation, tracing and error reporting."""

from .app import Application, IApplication
from .config import Settings, load_settings
from .consumer import TopicConsumer
from .errors import StackedErrorAggregator
from .resilience import CircuitBreaker, CircuitBreakerConfig
from .routing import MessageRouter
from .tracing import TraceContextManager

__all__ = [
    "Application",
    "IApplication",
    "Settings",
    "load_settings",
    "TopicConsumer",
    "StackedErrorAggregator",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "MessageRouter",
    "TraceContextManager",
]
