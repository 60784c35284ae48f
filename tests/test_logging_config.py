"""
Tests for logging configuration.

Tests cover:
- Float rounding processor
- Symbol context binding
- Handler setup (stderr and optional file)
"""

import logging
import sys

import pytest
import structlog

from config.logging_config import LOG_FLOAT_PRECISION, round_floats, setup_logging, symbol_context


@pytest.fixture
def restore_logging():
    """Put structlog and the root logger back after reconfiguring them."""
    saved_config = structlog.get_config()
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    yield
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers = saved_handlers
    root.setLevel(saved_level)
    structlog.reset_defaults()
    structlog.configure(**saved_config)


def test_round_floats():
    """Top-level floats are rounded; other values are untouched."""
    event = {"event": "x", "rsi": 71.123456789, "count": 3, "nested": {"v": 1.123456789}}

    result = round_floats(None, "info", event)

    assert result["rsi"] == round(71.123456789, LOG_FLOAT_PRECISION)
    assert result["count"] == 3
    assert result["nested"] == {"v": 1.123456789}


def test_symbol_context_binds_and_clears():
    """The symbol is bound only inside the block."""
    with symbol_context("PEPEUSDT"):
        assert structlog.contextvars.get_contextvars()["symbol"] == "PEPEUSDT"

    assert "symbol" not in structlog.contextvars.get_contextvars()


def test_setup_logging_writes_to_stderr(restore_logging):
    """Console output goes to stderr so stdout stays clean."""
    setup_logging(log_level="warning")

    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1
    assert root.handlers[0].stream is sys.stderr


def test_setup_logging_with_file(restore_logging, tmp_path):
    """A log file adds a second handler and creates its directory."""
    log_file = tmp_path / "logs" / "scanner.log"

    setup_logging(log_level="DEBUG", log_file=log_file, json_format=True)
    structlog.get_logger("test").info("file_event", value=1.0)
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert len(logging.getLogger().handlers) == 2
    assert "file_event" in log_file.read_text(encoding="utf-8")
