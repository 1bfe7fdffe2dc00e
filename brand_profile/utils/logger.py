"""
Structured logging for profile runs.

Everything logs through structlog. Library loggers that go through the
standard ``logging`` module share the same level and stream, and the
chattiest transport loggers are held at WARNING so request lines do not
drown out stage events.
"""

import logging
import sys
from typing import IO, Mapping, Optional

import structlog
from structlog.types import Processor

# Per-request INFO lines from the transport libraries
QUIET_LOGGERS = ("httpx", "httpcore", "anthropic")


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown log level: {level}")
    return number


def _processor_chain(json_format: bool, stream: IO[str]) -> list[Processor]:
    renderer: Processor
    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream.isatty())

    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        renderer,
    ]


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
    stream: Optional[IO[str]] = None,
) -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: One JSON object per line instead of console rendering
        log_file: Also write standard library records to this file
        stream: Output stream, stderr by default so stdout stays free for
            profile documents
    """
    stream = stream or sys.stderr
    threshold = _level_number(level)

    structlog.configure(
        processors=_processor_chain(json_format, stream),
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=stream, level=threshold)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(threshold, logging.WARNING))

    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(threshold)
        logging.getLogger().addHandler(handler)


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


class LogContext:
    """
    Bind key/value pairs to every log line emitted inside the block.

    On exit the previous values of the same keys are restored, so nested
    contexts that rebind ``run_id`` leave the outer one intact.
    """

    def __init__(self, **kwargs):
        self.context = kwargs
        self._tokens: Optional[Mapping] = None

    def __enter__(self):
        self._tokens = structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._tokens is not None:
            structlog.contextvars.reset_contextvars(**self._tokens)
            self._tokens = None
