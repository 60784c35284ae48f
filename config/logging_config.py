"""
Structured logging for the scanner using structlog.

Everything is written to stderr: the CLI prints its analysis JSON on stdout
and the two streams must never mix. Each analysis binds the symbol into the
context, so indicator and tier events logged deep in the pipeline still say
which coin they belong to.
"""

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import structlog

# Decimal places kept for float values in log events
LOG_FLOAT_PRECISION = 4


def round_floats(logger, method_name: str, event_dict: dict) -> dict:
    """structlog processor rounding top-level float values."""
    for key, value in event_dict.items():
        if isinstance(value, float):
            event_dict[key] = round(value, LOG_FLOAT_PRECISION)
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    json_format: bool = False,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_file: Optional file receiving the same records as stderr
        json_format: Render JSON lines instead of the console format
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    for handler in handlers:
        handler.setLevel(level)

    logging.basicConfig(format="%(message)s", level=level, handlers=handlers, force=True)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        round_floats,
    ]

    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=10),
        )

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )
    for handler in handlers:
        handler.setFormatter(formatter)


@contextmanager
def symbol_context(symbol: str) -> Iterator[None]:
    """Bind ``symbol`` to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(symbol=symbol):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Structured logger for a module (pass ``__name__``)."""
    return structlog.get_logger(name)
