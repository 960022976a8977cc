"""Circuit breaker guarding calls to a failing downstream dependency."""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from ..logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitBreakerState(str, Enum):
    """Breaker states."""

    CLOSED = "closed"  # normal operation
    OPEN = "open"  # failing fast
    HALF_OPEN = "half_open"  # probing for recovery


class CircuitOpenError(Exception):
    """Raised instead of calling through while the breaker is open."""

    def __init__(self, name: str, retry_after_ms: int):
        super().__init__(
            f"Circuit breaker '{name}' is OPEN - retry in {retry_after_ms} ms"
        )
        self.name = name
        self.retry_after_ms = retry_after_ms


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Breaker thresholds."""

    failure_threshold: int = 5
    reset_timeout_ms: int = 60_000
    success_threshold: int = 3

    def __post_init__(self):
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if self.success_threshold < 1:
            raise ValueError("success_threshold must be at least 1")
        if self.reset_timeout_ms < 0:
            raise ValueError("reset_timeout_ms must not be negative")


@dataclass(frozen=True)
class CircuitBreakerSnapshot:
    """Point-in-time view of breaker state."""

    name: str
    state: CircuitBreakerState
    consecutive_failures: int
    consecutive_successes: int
    last_failure_time: float | None


class CircuitBreaker:
    """
    Three-state circuit breaker for async operations.

    execute() holds the breaker lock across the whole check, call and update
    sequence, so concurrent callers never race past the threshold check or
    double-count a failure. A half-open probe is therefore single-flight.
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config = config or CircuitBreakerConfig()
        self._name = name
        self._clock = clock
        self._lock = asyncio.Lock()

        self._state = CircuitBreakerState.CLOSED
        self._consecutive_failures = 0
        self._consecutive_successes = 0
        self._last_failure_time: float | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._config

    @property
    def state(self) -> CircuitBreakerState:
        return self._state

    def snapshot(self) -> CircuitBreakerSnapshot:
        return CircuitBreakerSnapshot(
            name=self._name,
            state=self._state,
            consecutive_failures=self._consecutive_failures,
            consecutive_successes=self._consecutive_successes,
            last_failure_time=self._last_failure_time,
        )

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run `fn` under breaker protection.

        Raises:
            CircuitOpenError: the breaker is open and the reset timeout has not
                elapsed; `fn` is not called.
            Exception: whatever `fn` raised, after recording the failure.
        """
        async with self._lock:
            self._before_call()

            try:
                result = await fn()
            except Exception:
                self._on_failure()
                raise

            self._on_success()
            return result

    async def reset(self) -> None:
        """Force the breaker back to CLOSED."""
        async with self._lock:
            self._transition(CircuitBreakerState.CLOSED)
            self._consecutive_failures = 0
            self._consecutive_successes = 0
            self._last_failure_time = None

    def _elapsed_ms(self) -> float:
        if self._last_failure_time is None:
            return float("inf")
        return (self._clock() - self._last_failure_time) * 1000

    def _before_call(self) -> None:
        if self._state is not CircuitBreakerState.OPEN:
            return

        elapsed_ms = self._elapsed_ms()
        if elapsed_ms >= self._config.reset_timeout_ms:
            self._transition(CircuitBreakerState.HALF_OPEN)
            self._consecutive_successes = 0
            return

        retry_after_ms = max(0, int(self._config.reset_timeout_ms - elapsed_ms))
        raise CircuitOpenError(self._name, retry_after_ms)

    def _on_success(self) -> None:
        self._consecutive_failures = 0

        if self._state is CircuitBreakerState.HALF_OPEN:
            self._consecutive_successes += 1
            if self._consecutive_successes >= self._config.success_threshold:
                self._transition(CircuitBreakerState.CLOSED)
                self._consecutive_successes = 0

    def _on_failure(self) -> None:
        self._consecutive_failures += 1
        self._last_failure_time = self._clock()

        if self._state is CircuitBreakerState.HALF_OPEN:
            self._consecutive_successes = 0
            self._transition(CircuitBreakerState.OPEN)
        elif self._consecutive_failures >= self._config.failure_threshold:
            self._transition(CircuitBreakerState.OPEN)

    def _transition(self, new_state: CircuitBreakerState) -> None:
        if new_state is self._state:
            return
        logger.debug(
            "Circuit breaker %s: %s -> %s",
            self._name,
            self._state.value,
            new_state.value,
        )
        self._state = new_state
