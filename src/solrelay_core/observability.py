"""Structured logging configuration with structlog.

Call ``configure_logging()`` once at process start (every CLI does), then log
with ``structlog.get_logger(__name__)``. Output goes to stderr so command
results printed on stdout stay machine-readable.

    SOLRELAY_LOG_LEVEL   DEBUG | INFO | WARNING | ERROR   (default INFO)
    SOLRELAY_LOG_FORMAT  console | json                   (default console)
"""
from __future__ import annotations

import logging
import os
import sys

import structlog
from structlog.typing import Processor

LOG_LEVEL_ENV = "SOLRELAY_LOG_LEVEL"
LOG_FORMAT_ENV = "SOLRELAY_LOG_FORMAT"


def _get_log_level() -> int:
    level_name = os.getenv(LOG_LEVEL_ENV, "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def configure_logging(fmt: str | None = None) -> None:
    fmt = fmt or os.getenv(LOG_FORMAT_ENV, "console")
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_get_log_level()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
