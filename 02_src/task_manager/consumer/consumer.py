"""In-process topic consumer with per-partition ordered delivery."""

import asyncio
import itertools
import zlib
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol

from ..errors import TaskProcessingError
from ..logging_config import get_logger
from ..models import InboundEvent

logger = get_logger(__name__)


MessageCallback = Callable[[InboundEvent], Awaitable[Any]]


@dataclass
class DeadLetter:
    """A message that will not be delivered again."""

    event: InboundEvent
    error_type: str
    error: str
    attempts: int
    retryable: bool
    timestamp: datetime


class ITopicConsumer(Protocol):
    """Delivers published records to one callback per topic."""

    def subscribe(self, topic: str, callback: MessageCallback) -> None:
        """Register the delivery callback of a topic."""
        ...

    async def publish(
        self,
        topic: str,
        headers: dict[str, bytes | str],
        body: bytes | str,
        key: bytes | str | None = None,
    ) -> InboundEvent:
        """Append a record to a topic partition."""
        ...


class TopicConsumer:
    """
    Delivers records one at a time per partition.

    Each partition has its own queue and worker, so attempts for records of
    the same partition never overlap while partitions run concurrently. A
    successful attempt commits the offset. Non-retryable TaskProcessingErrors
    are dead-lettered at once; other failures are redelivered up to
    max_attempts and then dead-lettered. Dead-lettered offsets are committed
    so the partition keeps moving.
    """

    def __init__(
        self,
        partitions: int = 3,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 0.5,
        max_dead_letters: int = 1000,
    ):
        if partitions < 1:
            raise ValueError("partitions must be at least 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self._partitions = partitions
        self._max_attempts = max_attempts
        self._retry_backoff = retry_backoff_seconds
        self._subscribers: dict[str, MessageCallback] = {}
        self._queues: dict[tuple[str, int], asyncio.Queue[InboundEvent]] = {}
        self._workers: dict[tuple[str, int], asyncio.Task] = {}
        self._next_offsets: dict[tuple[str, int], int] = {}
        self._round_robin = itertools.count()
        self._running = False

        # Next offset to read per (topic, partition), Kafka commit semantics.
        self.committed_offsets: dict[tuple[str, int], int] = {}
        self.dead_letters: deque[DeadLetter] = deque(maxlen=max_dead_letters)
        self._delivered = 0
        self._redelivered = 0
        self._dead_lettered = 0

    @property
    def partitions(self) -> int:
        return self._partitions

    def subscribe(self, topic: str, callback: MessageCallback) -> None:
        """Subscribe the delivery callback for a topic."""
        self._subscribers[topic] = callback
        for partition in range(self._partitions):
            key = (topic, partition)
            self._queues.setdefault(key, asyncio.Queue())
            self._next_offsets.setdefault(key, 0)
            if self._running and key not in self._workers:
                self._workers[key] = asyncio.create_task(self._run_partition(key))

    async def start(self) -> None:
        """Start one worker per subscribed partition."""
        if self._running:
            return
        self._running = True
        for key in self._queues:
            if key not in self._workers:
                self._workers[key] = asyncio.create_task(self._run_partition(key))

    async def stop(self) -> None:
        """Stop workers; records still queued stay uncommitted."""
        self._running = False
        workers = list(self._workers.values())
        self._workers.clear()
        for worker in workers:
            worker.cancel()
        for worker in workers:
            try:
                await worker
            except asyncio.CancelledError:
                pass

    async def join(self) -> None:
        """Wait until every queued record has been processed."""
        await asyncio.gather(*(queue.join() for queue in self._queues.values()))

    def partition_for(self, key: bytes | str | None) -> int:
        """Stable partition for a key; keyless records are spread round-robin."""
        if key is None:
            return next(self._round_robin) % self._partitions
        if isinstance(key, str):
            key = key.encode("utf-8")
        return zlib.crc32(key) % self._partitions

    async def publish(
        self,
        topic: str,
        headers: dict[str, bytes | str],
        body: bytes | str,
        key: bytes | str | None = None,
    ) -> InboundEvent:
        """Append a record; it is delivered asynchronously by its partition worker."""
        if topic not in self._subscribers:
            raise ValueError(f"Unknown topic: {topic}")

        partition = self.partition_for(key)
        queue_key = (topic, partition)
        offset = self._next_offsets[queue_key]
        self._next_offsets[queue_key] = offset + 1

        event = InboundEvent(
            topic=topic,
            partition=partition,
            offset=offset,
            key=key.encode("utf-8") if isinstance(key, str) else key,
            headers={
                k: v.encode("utf-8") if isinstance(v, str) else v
                for k, v in headers.items()
            },
            body=body.encode("utf-8") if isinstance(body, str) else body,
            timestamp=datetime.now(timezone.utc),
        )
        await self._queues[queue_key].put(event)
        return event

    def stats(self) -> dict:
        return {
            "running": self._running,
            "partitions": self._partitions,
            "topics": sorted(self._subscribers),
            "delivered": self._delivered,
            "redelivered": self._redelivered,
            "dead_lettered": self._dead_lettered,
            "committed_offsets": {
                f"{topic}:{partition}": offset
                for (topic, partition), offset in sorted(self.committed_offsets.items())
            },
        }

    async def _run_partition(self, key: tuple[str, int]) -> None:
        queue = self._queues[key]
        while True:
            event = await queue.get()
            try:
                await self._deliver(event)
            finally:
                queue.task_done()

    async def _deliver(self, event: InboundEvent) -> None:
        callback = self._subscribers[event.topic]
        last_error: Exception | None = None

        for attempt in range(1, self._max_attempts + 1):
            self._delivered += 1
            try:
                await callback(event)
            except TaskProcessingError as e:
                if not e.retryable:
                    self._dead_letter(event, e, attempt)
                    return
                last_error = e
            except Exception as e:
                last_error = e
            else:
                self._commit(event)
                return

            if attempt < self._max_attempts:
                self._redelivered += 1
                logger.warning(
                    "Redelivering %s[%s]@%s after attempt %s: %s",
                    event.topic,
                    event.partition,
                    event.offset,
                    attempt,
                    last_error,
                )
                await asyncio.sleep(self._retry_backoff * attempt)

        self._dead_letter(event, last_error, self._max_attempts)

    def _commit(self, event: InboundEvent) -> None:
        self.committed_offsets[(event.topic, event.partition)] = event.offset + 1

    def _dead_letter(self, event: InboundEvent, error: Exception | None, attempts: int) -> None:
        retryable = getattr(error, "retryable", True)
        self._dead_lettered += 1
        self.dead_letters.append(
            DeadLetter(
                event=event,
                error_type=type(error).__name__,
                error=str(error),
                attempts=attempts,
                retryable=retryable,
                timestamp=datetime.now(timezone.utc),
            )
        )
        logger.error(
            "Message %s[%s]@%s dead-lettered after %s attempt(s): %s",
            event.topic,
            event.partition,
            event.offset,
            attempts,
            error,
            extra={"context": {"error_type": type(error).__name__, "retryable": retryable}},
        )
        self._commit(event)
