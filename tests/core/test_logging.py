"""
Tests for the logging module.

Tests verify:
- configure_logging picks the renderer and service name
- LogContext binds and restores contextvars
"""

import structlog

from jobspine.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)


def _processors():
    return structlog.get_config()["processors"]


class TestConfigureLogging:
    def test_json_renderer(self):
        configure_logging(level="DEBUG", json_format=True, service="svc")
        assert isinstance(_processors()[-1], structlog.processors.JSONRenderer)

    def test_console_renderer(self):
        configure_logging(level="INFO", json_format=False)
        assert isinstance(_processors()[-1], structlog.dev.ConsoleRenderer)

    def test_timestamp_optional(self):
        configure_logging(json_format=True, add_timestamp=False)
        assert not any(
            isinstance(p, structlog.processors.TimeStamper) for p in _processors()
        )

    def test_settings_fallback(self, monkeypatch):
        monkeypatch.setenv("JOBSPINE_LOG_JSON", "true")
        configure_logging()
        assert isinstance(_processors()[-1], structlog.processors.JSONRenderer)

    def test_service_metadata_added(self):
        configure_logging(json_format=True, service="game-client")
        add_service = next(p for p in _processors() if getattr(p, "__name__", "") == "_add_service_metadata")
        assert add_service(None, "info", {})["service"] == "game-client"


class TestContext:
    def test_bind_and_unbind(self):
        bind_context(pipeline_id="init", job="load")
        unbind_context("job")
        assert structlog.contextvars.get_contextvars() == {"pipeline_id": "init"}
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_log_context_restores_previous_values(self):
        bind_context(pipeline_id="outer")
        with LogContext(pipeline_id="inner", job="x"):
            assert structlog.contextvars.get_contextvars() == {
                "pipeline_id": "inner",
                "job": "x",
            }
        assert structlog.contextvars.get_contextvars() == {"pipeline_id": "outer"}


def test_get_logger_logs_events():
    logger = get_logger("jobspine.test")
    with structlog.testing.capture_logs() as logs:
        logger.info("job.started", job="load")
    assert logs == [{"event": "job.started", "job": "load", "log_level": "info"}]
