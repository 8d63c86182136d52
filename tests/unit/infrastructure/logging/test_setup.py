"""Tests for logging setup module."""

import json
import logging
import re
from datetime import datetime, timezone

import pytest

from huddle.config.models import LoggingConfig
from huddle.infrastructure.logging import get_logger, setup_logging
from huddle.infrastructure.logging.setup import NOISY_LOGGERS


def _reset_root_logger() -> None:
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.WARNING)


class TestSetupLogging:
    """Tests for setup_logging function."""

    def setup_method(self) -> None:
        """Reset logging configuration before each test."""
        _reset_root_logger()

    def test_json_format_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        """JSON entries carry timestamp, level and event."""
        setup_logging(LoggingConfig(level="INFO", format="json"))

        get_logger("test").info("Message indexed")

        log_entry = json.loads(capsys.readouterr().out.strip())
        assert "timestamp" in log_entry
        assert log_entry["level"] == "info"
        assert log_entry["event"] == "Message indexed"

    def test_debug_hidden_at_info_level(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging(LoggingConfig(level="INFO", format="json"))

        get_logger("test").debug("Debug message")

        assert capsys.readouterr().out == ""

    def test_debug_shown_at_debug_level(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging(LoggingConfig(level="DEBUG", format="json"))

        get_logger("test").debug("Debug message")

        log_entry = json.loads(capsys.readouterr().out.strip())
        assert log_entry["event"] == "Debug message"

    def test_key_value_context(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Keyword context appears as top-level keys."""
        setup_logging(LoggingConfig(level="INFO", format="json"))

        logger = get_logger("test").bind(message_id="01HXYZ")
        logger.info("Analysis completed", similar_messages=3)

        log_entry = json.loads(capsys.readouterr().out.strip())
        assert log_entry["message_id"] == "01HXYZ"
        assert log_entry["similar_messages"] == 3
        assert log_entry["event"] == "Analysis completed"

    def test_exception_logging(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging(LoggingConfig(level="INFO", format="json"))
        logger = get_logger("test")

        try:
            raise ValueError("Test error")
        except ValueError:
            logger.exception("An error occurred")

        log_entry = json.loads(capsys.readouterr().out.strip())
        assert "ValueError" in log_entry["exception"]
        assert "Test error" in log_entry["exception"]

    def test_timestamp_is_iso8601_utc(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging(LoggingConfig(level="INFO", format="json"))

        before = datetime.now(timezone.utc)
        get_logger("test").info("Test message")
        after = datetime.now(timezone.utc)

        timestamp = json.loads(capsys.readouterr().out.strip())["timestamp"]
        assert re.match(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d+Z", timestamp)
        log_time = datetime.fromisoformat(timestamp.rstrip("Z")).replace(
            tzinfo=timezone.utc
        )
        assert before <= log_time <= after

    def test_text_format_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging(LoggingConfig(level="INFO", format="text"))

        get_logger("test").info("Text message")

        captured = capsys.readouterr()
        with pytest.raises(json.JSONDecodeError):
            json.loads(captured.out.strip())
        assert "Text message" in captured.out

    def test_stdlib_loggers_share_the_handler(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Plain logging calls are rendered the same way."""
        setup_logging(LoggingConfig(level="INFO", format="json"))

        logging.getLogger("aiohttp.access").info("GET /healthz")

        log_entry = json.loads(capsys.readouterr().out.strip())
        assert log_entry["event"] == "GET /healthz"
        assert log_entry["logger"] == "aiohttp.access"

    def test_provider_loggers_quieted(self) -> None:
        """Provider SDK loggers stay at WARNING even at DEBUG level."""
        setup_logging(LoggingConfig(level="DEBUG", format="json"))

        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING


class TestGetLogger:
    """Tests for get_logger function."""

    def setup_method(self) -> None:
        """Reset logging configuration before each test."""
        _reset_root_logger()

    def test_get_logger_with_name(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging(LoggingConfig(level="INFO", format="json"))

        get_logger("fanout_router").info("Test message")

        log_entry = json.loads(capsys.readouterr().out.strip())
        assert log_entry["logger"] == "fanout_router"

    def test_get_logger_returns_bound_logger(self) -> None:
        setup_logging(LoggingConfig(level="INFO", format="json"))

        logger = get_logger("test")

        assert callable(logger.bind)
        for method in ("debug", "info", "warning", "error", "exception"):
            assert callable(getattr(logger, method))
