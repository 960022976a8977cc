"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_LOG_PATH = LOGS_DIR / "task_manager.log"

DEFAULT_TASK_STATUS_TOPIC = "task-status"
DEFAULT_WEB_CRAWL_REQUEST_TOPIC = "requests-web-crawl"


PathLike = Union[str, Path]


def resolve_log_path(env_value: PathLike | None = None) -> Path:
    """Resolve LOG_FILE to an absolute path."""
    if not env_value:
        return DEFAULT_LOG_PATH

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {value!r}") from e


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {value!r}") from e


@dataclass
class Settings:
    """Runtime settings for the task-status consumer."""

    service_name: str = "task-manager"
    log_level: str = "INFO"
    log_file: Path = DEFAULT_LOG_PATH

    # Telemetry collector (OTLP/HTTP)
    enable_otel: bool = False
    otel_endpoint: str = "http://localhost:4318"
    otel_timeout_seconds: float = 5.0
    otel_flush_interval_seconds: float = 1.0

    # Circuit breaker guarding the collector
    breaker_failure_threshold: int = 5
    breaker_reset_timeout_ms: int = 60_000
    breaker_success_threshold: int = 3

    # Consumer runtime
    task_status_topic: str = DEFAULT_TASK_STATUS_TOPIC
    web_crawl_request_topic: str = DEFAULT_WEB_CRAWL_REQUEST_TOPIC
    consumer_partitions: int = 3
    consumer_max_attempts: int = 3
    consumer_retry_backoff_seconds: float = 0.5

    # API
    api_host: str = "localhost"
    api_port: int = 8000


def load_settings() -> Settings:
    """Build Settings from environment variables."""
    settings = Settings(
        service_name=os.getenv("SERVICE_NAME", "task-manager"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_file=resolve_log_path(os.getenv("LOG_FILE")),
        enable_otel=_env_bool("LOG_ENABLE_OTEL", False),
        otel_endpoint=os.getenv(
            "OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4318"
        ).rstrip("/"),
        otel_timeout_seconds=_env_float("OTEL_EXPORTER_TIMEOUT_SECONDS", 5.0),
        otel_flush_interval_seconds=_env_float("OTEL_EXPORTER_FLUSH_INTERVAL_SECONDS", 1.0),
        breaker_failure_threshold=_env_int("LOG_CIRCUIT_BREAKER_FAILURE_THRESHOLD", 5),
        breaker_reset_timeout_ms=_env_int("LOG_CIRCUIT_BREAKER_RESET_TIMEOUT", 60_000),
        breaker_success_threshold=_env_int("LOG_CIRCUIT_BREAKER_SUCCESS_THRESHOLD", 3),
        task_status_topic=os.getenv("TASK_STATUS_TOPIC", DEFAULT_TASK_STATUS_TOPIC),
        web_crawl_request_topic=os.getenv(
            "WEB_CRAWL_REQUEST_TOPIC", DEFAULT_WEB_CRAWL_REQUEST_TOPIC
        ),
        consumer_partitions=_env_int("CONSUMER_PARTITIONS", 3),
        consumer_max_attempts=_env_int("CONSUMER_MAX_ATTEMPTS", 3),
        consumer_retry_backoff_seconds=_env_float("CONSUMER_RETRY_BACKOFF_SECONDS", 0.5),
        api_host=os.getenv("API_HOST", "localhost"),
        api_port=_env_int("API_PORT", 8000),
    )

    if settings.consumer_partitions < 1:
        raise ValueError("CONSUMER_PARTITIONS must be at least 1")
    if settings.consumer_max_attempts < 1:
        raise ValueError("CONSUMER_MAX_ATTEMPTS must be at least 1")

    return settings
