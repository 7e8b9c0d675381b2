"""Tests for logging configuration."""

import json
import logging
import re

import pytest
import structlog

from redfish_subscriptions.logging_config import get_logger, setup_logging


def strip_ansi(text):
    """Strip ANSI escape sequences from text."""
    ansi_escape = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")
    return ansi_escape.sub("", text)


def parse_json_lines(output):
    """Parse output containing multiple JSON lines."""
    lines = output.strip().split("\n")
    return [json.loads(line) for line in lines if line.strip()]


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


class TestLoggingSetup:
    """Test logging setup and configuration."""

    def test_setup_logging_json_format(self, capsys):
        setup_logging(service_name="test_service", log_format="json", log_level="INFO")

        logger = structlog.get_logger()
        logger.info("subscription_created", server_ip="10.0.0.1", attempt=1)

        entries = parse_json_lines(capsys.readouterr().out)
        log_entry = next((e for e in entries if e.get("event") == "subscription_created"), None)
        assert log_entry is not None

        assert log_entry["service"] == "test_service"
        assert log_entry["server_ip"] == "10.0.0.1"
        assert log_entry["attempt"] == 1
        assert log_entry["level"] == "info"
        assert "timestamp" in log_entry

    def test_setup_logging_console_format(self, capsys):
        setup_logging(service_name="test_service", log_format="console", log_level="INFO")

        logger = structlog.get_logger()
        logger.info("subscription_created", server_ip="10.0.0.1")

        output = strip_ansi(capsys.readouterr().out)

        assert "subscription_created" in output
        assert "server_ip=10.0.0.1" in output

    def test_setup_logging_from_env(self, monkeypatch, capsys):
        """Unspecified arguments fall back to settings from the environment."""
        monkeypatch.setenv("SERVICE_NAME", "env_service")
        monkeypatch.setenv("LOG_FORMAT", "json")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        setup_logging()

        logger = structlog.get_logger()
        logger.debug("debug_event", test=True)

        entries = parse_json_lines(capsys.readouterr().out)
        log_entry = next((e for e in entries if e.get("event") == "debug_event"), None)

        assert log_entry is not None
        assert log_entry["service"] == "env_service"
        assert log_entry["level"] == "debug"

    def test_log_level_filtering(self, capsys):
        setup_logging(service_name="test_service", log_format="console", log_level="WARNING")

        logger = structlog.get_logger()
        logger.info("info_event")
        logger.warning("warning_event")
        logger.error("error_event")

        output = strip_ansi(capsys.readouterr().out)

        assert "info_event" not in output
        assert "warning_event" in output
        assert "error_event" in output


class TestGetLogger:
    def test_get_logger_with_name(self):
        setup_logging(service_name="test_service")
        logger = get_logger("redfish_subscriptions.client")
        assert logger is not None
        assert hasattr(logger, "info")

    def test_error_with_exception_info(self, capsys):
        setup_logging(service_name="test_service", log_format="json", log_level="INFO")

        logger = get_logger(__name__)
        try:
            raise ValueError("BMC unreachable")
        except ValueError as e:
            logger.error("connect_failed", error=str(e), exc_info=True)

        entries = parse_json_lines(capsys.readouterr().out)
        log_entry = next((e for e in entries if e.get("event") == "connect_failed"), None)

        assert log_entry is not None
        assert log_entry["error"] == "BMC unreachable"
        assert "exception" in log_entry
