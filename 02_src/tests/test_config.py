"""Tests for configuration loading."""

import pytest

from task_manager.config import PROJECT_ROOT, load_settings, resolve_log_path


class TestResolveLogPath:
    def test_default(self):
        assert resolve_log_path(None).name == "task_manager.log"

    def test_relative_to_project_root(self):
        assert resolve_log_path("04_logs/x.log") == PROJECT_ROOT / "04_logs" / "x.log"

    def test_absolute(self, tmp_path):
        assert resolve_log_path(tmp_path / "x.log") == tmp_path / "x.log"


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_defaults(self, monkeypatch):
        for name in ("LOG_ENABLE_OTEL", "LOG_CIRCUIT_BREAKER_FAILURE_THRESHOLD", "TASK_STATUS_TOPIC"):
            monkeypatch.delenv(name, raising=False)
        settings = load_settings()
        assert settings.enable_otel is False
        assert settings.breaker_failure_threshold == 5
        assert settings.breaker_reset_timeout_ms == 60_000
        assert settings.breaker_success_threshold == 3
        assert settings.task_status_topic == "task-status"

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("LOG_ENABLE_OTEL", "true")
        monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector:4318/")
        monkeypatch.setenv("LOG_CIRCUIT_BREAKER_RESET_TIMEOUT", "500")
        monkeypatch.setenv("CONSUMER_PARTITIONS", "4")
        monkeypatch.setenv("OTEL_EXPORTER_FLUSH_INTERVAL_SECONDS", "0.25")

        settings = load_settings()

        assert settings.enable_otel is True
        assert settings.otel_endpoint == "http://collector:4318"
        assert settings.breaker_reset_timeout_ms == 500
        assert settings.consumer_partitions == 4
        assert settings.otel_flush_interval_seconds == 0.25

    def test_invalid_integer(self, monkeypatch):
        monkeypatch.setenv("API_PORT", "eighty")
        with pytest.raises(ValueError, match="API_PORT"):
            load_settings()

    def test_invalid_partitions(self, monkeypatch):
        monkeypatch.setenv("CONSUMER_PARTITIONS", "0")
        with pytest.raises(ValueError, match="CONSUMER_PARTITIONS"):
            load_settings()
