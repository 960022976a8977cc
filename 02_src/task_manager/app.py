"""Application bootstrap and lifecycle management."""

import logging
from typing import Protocol

import httpx

from .config import Settings, load_settings
from .consumer import TopicConsumer
from .handlers import CompleteTaskHandler, ErrorTaskHandler, NewTaskHandler
from .logging_config import get_logger
from .models import InboundEvent, ProcessingOutcome, TaskStatus
from .ports import (
    ICrawlRequestPublisher,
    InMemoryCrawlRequestPublisher,
    InMemoryTaskPort,
    ITaskPort,
)
from .resilience import CircuitBreaker, CircuitBreakerConfig
from .routing import MessageRouter
from .telemetry import TelemetryExporter, TelemetryLogHandler
from .tracker import Tracker

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Reset data between test runs."""
        ...


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        settings: Settings | None = None,
        task_port: ITaskPort | None = None,
        crawl_publisher: ICrawlRequestPublisher | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._settings = settings or load_settings()
        self._task_port = task_port
        self._crawl_publisher = crawl_publisher
        self._http_client = http_client

        # Components (will be initialized in start())
        self._breaker: CircuitBreaker | None = None
        self._exporter: TelemetryExporter | None = None
        self._log_handler: TelemetryLogHandler | None = None
        self._tracker: Tracker | None = None
        self._router: MessageRouter | None = None
        self._consumer: TopicConsumer | None = None
        self._started = False

    async def start(self) -> None:
        """Initialize components in dependency order."""
        if self._started:
            return
        logger.info("Starting application")
        settings = self._settings

        # 1. Circuit breaker guarding the collector
        self._breaker = CircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.breaker_failure_threshold,
                reset_timeout_ms=settings.breaker_reset_timeout_ms,
                success_threshold=settings.breaker_success_threshold,
            ),
            name="otel-collector",
        )

        # 2. Exporter (depends on breaker)
        self._exporter = TelemetryExporter(
            endpoint=settings.otel_endpoint,
            service_name=settings.service_name,
            breaker=self._breaker,
            client=self._http_client,
            timeout=settings.otel_timeout_seconds,
            enabled=settings.enable_otel,
        )
        if settings.enable_otel:
            self._log_handler = TelemetryLogHandler(self._exporter)
            logging.getLogger().addHandler(self._log_handler)
            self._exporter.start(settings.otel_flush_interval_seconds)
            logger.info("Telemetry export enabled: %s", settings.otel_endpoint)

        # 3. Tracker (spans flow to the exporter)
        self._tracker = Tracker(sink=self._exporter)

        # 4. Ports used by the handlers
        if self._task_port is None:
            self._task_port = InMemoryTaskPort()
        if self._crawl_publisher is None:
            self._crawl_publisher = InMemoryCrawlRequestPublisher(
                topic=settings.web_crawl_request_topic
            )

        # 5. Router
        self._router = MessageRouter(tracker=self._tracker)
        self._router.register(
            TaskStatus.NEW,
            NewTaskHandler(self._task_port, self._tracker, self._crawl_publisher),
        )
        self._router.register(
            TaskStatus.COMPLETED, CompleteTaskHandler(self._task_port, self._tracker)
        )
        self._router.register(TaskStatus.ERROR, ErrorTaskHandler(self._task_port, self._tracker))

        # 6. Consumer subscription
        self._consumer = TopicConsumer(
            partitions=settings.consumer_partitions,
            max_attempts=settings.consumer_max_attempts,
            retry_backoff_seconds=settings.consumer_retry_backoff_seconds,
        )
        self._consumer.subscribe(settings.task_status_topic, self._on_message)
        await self._consumer.start()

        self._started = True
        logger.info(
            "All components initialized, consuming %s",
            settings.task_status_topic,
        )

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._consumer:
            await self._consumer.stop()
        if self._log_handler:
            logging.getLogger().removeHandler(self._log_handler)
            self._log_handler = None
        if self._exporter:
            await self._exporter.aclose()
        self._started = False
        logger.info("Application stopped")

    async def reset(self) -> None:
        """Reset data between test runs."""
        if self._consumer:
            await self._consumer.join()
        if self._tracker:
            self._tracker.clear()
        if self._breaker:
            await self._breaker.reset()
        if self._consumer:
            self._consumer.dead_letters.clear()
        if isinstance(self._task_port, InMemoryTaskPort):
            await self._task_port.clear()
        if isinstance(self._crawl_publisher, InMemoryCrawlRequestPublisher):
            await self._crawl_publisher.clear()
        logger.info("Reset complete")

    async def _on_message(self, event: InboundEvent) -> ProcessingOutcome:
        return await self.router.process(event)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def breaker(self) -> CircuitBreaker:
        """Get circuit breaker instance."""
        if not self._breaker:
            raise RuntimeError("Application not started")
        return self._breaker

    @property
    def exporter(self) -> TelemetryExporter:
        if not self._exporter:
            raise RuntimeError("Application not started")
        return self._exporter

    @property
    def tracker(self) -> Tracker:
        """Get tracker instance."""
        if not self._tracker:
            raise RuntimeError("Application not started")
        return self._tracker

    @property
    def router(self) -> MessageRouter:
        if not self._router:
            raise RuntimeError("Application not started")
        return self._router

    @property
    def consumer(self) -> TopicConsumer:
        """Get consumer instance."""
        if not self._consumer:
            raise RuntimeError("Application not started")
        return self._consumer

    @property
    def task_port(self) -> ITaskPort:
        if not self._task_port:
            raise RuntimeError("Application not started")
        return self._task_port

    @property
    def crawl_publisher(self) -> ICrawlRequestPublisher:
        if not self._crawl_publisher:
            raise RuntimeError("Application not started")
        return self._crawl_publisher
