"""Structured logging setup for offercalc."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import structlog

from offercalc.config import AppConfig, get_config


def _renderer(log_format: str) -> Any:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_logging(config: AppConfig | None = None) -> None:
    """Configure structlog and stdlib logging from ``config`` (env when None).

    ``log_format`` "json" renders one JSON object per line; anything else
    uses the console renderer. ``log_file`` adds a file handler when its
    directory exists.
    """
    config = config or get_config()

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors + [_renderer(config.log_format)],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        log_file = Path(config.log_file)
        if log_file.parent.exists():
            handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        format="%(message)s",
        handlers=handlers,
        level=config.log_level.upper(),
    )
