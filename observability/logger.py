"""Structured logging for the HTTP service layer, built on structlog."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

# Loggers of the libraries we sit on top of; they are chatty at DEBUG.
_QUIET_LOGGERS = ("httpx", "httpcore")


def setup_logging(
    level: str = "INFO",
    fmt: str = "json",
    *,
    stream: TextIO | None = None,
) -> None:
    """Route stdlib logging and structlog through one renderer.

    ``fmt`` is ``"json"`` for machine-readable lines or ``"console"`` for
    coloured key=value output while developing.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stderr,
        level=log_level,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if fmt == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(request_id: str, method: str, url: str) -> None:
    """Attach request identity to every log line emitted in this context."""
    structlog.contextvars.bind_contextvars(
        request_id=request_id, method=method, url=url,
    )


def clear_request_context() -> None:
    structlog.contextvars.unbind_contextvars("request_id", "method", "url")
