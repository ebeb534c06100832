"""Logging configuration shared by the API server and scripts."""
from __future__ import annotations

import logging
import os
import sys

import structlog
from structlog.types import Processor


def configure_logging(level: str | int | None = None, log_format: str | None = None) -> None:
    """Configure structlog and route stdlib logging through the same renderer.

    ``LOG_FORMAT=json`` emits JSON lines for log aggregation;
    ``LOG_FORMAT=console`` (the default) emits coloured console output.
    ``LOG_LEVEL`` sets the root level (default ``INFO``).
    """
    log_format = (log_format or os.environ.get("LOG_FORMAT", "console")).lower()
    level = level or os.environ.get("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Stdlib loggers (tracker modules, httpx, uvicorn) share the pipeline.
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
