"""Tests for the logging dictConfig builder."""

from __future__ import annotations

import logging

import structlog

from parsevideo.infrastructure.config.schema import AppConfig
from parsevideo.infrastructure.logging.setup import (
    BASE_LOGGING_CONFIG,
    _add_record_created_timestamp_utc,
    _drop_color_message,
    build_logging_config,
)


class TestBuildLoggingConfig:
    def test_level_applied_to_uvicorn_loggers(self) -> None:
        cfg = build_logging_config(AppConfig(log_level="ERROR"))
        assert cfg["loggers"]["uvicorn"]["level"] == "ERROR"
        assert cfg["loggers"]["uvicorn.access"]["level"] == "ERROR"
        assert cfg["root"]["level"] == "ERROR"

    def test_httpx_stays_quiet_at_debug(self) -> None:
        cfg = build_logging_config(AppConfig(log_level="DEBUG"))
        assert cfg["loggers"]["httpx"]["level"] == "WARNING"
        assert cfg["loggers"]["uvicorn"]["level"] == "DEBUG"

    def test_httpx_follows_stricter_level(self) -> None:
        cfg = build_logging_config(AppConfig(log_level="ERROR"))
        assert cfg["loggers"]["httpx"]["level"] == "ERROR"

    def test_handlers_use_structlog_formatter(self) -> None:
        cfg = build_logging_config(AppConfig())
        assert cfg["handlers"]["default"]["formatter"] == "structlog"
        assert cfg["handlers"]["access"]["formatter"] == "structlog"
        assert cfg["formatters"]["structlog"]["()"] is structlog.stdlib.ProcessorFormatter

    def test_json_renderer_in_prod(self) -> None:
        cfg = build_logging_config(AppConfig(environment="prod"))
        processors = cfg["formatters"]["structlog"]["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_console_renderer_in_dev(self) -> None:
        cfg = build_logging_config(AppConfig(environment="dev"))
        processors = cfg["formatters"]["structlog"]["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_base_config_untouched(self) -> None:
        build_logging_config(AppConfig(log_level="DEBUG"))
        assert BASE_LOGGING_CONFIG["loggers"]["uvicorn"]["level"] == "INFO"
        assert "structlog" not in BASE_LOGGING_CONFIG["formatters"]


class TestProcessors:
    def test_drop_color_message(self) -> None:
        out = _drop_color_message(None, None, {"event": "x", "color_message": "y"})
        assert out == {"event": "x"}

    def test_foreign_record_timestamp(self) -> None:
        record = logging.LogRecord("httpx", logging.INFO, __file__, 1, "msg", None, None)
        record.created = 0.0
        out = _add_record_created_timestamp_utc(None, None, {"_record": record})
        assert out["timestamp"] == "1970-01-01T00:00:00Z"
