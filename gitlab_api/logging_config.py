"""Structured logging setup for applications embedding the client."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


def configure_logging(log_level: str = "INFO", *, json_output: bool = True) -> None:
    """Install a structlog pipeline with JSON or console output on stdout.

    The library itself only emits events; calling this is left to the application.
    Events are rendered by structlog and written through the standard library
    root handler this installs.
    """
    renderer: Any = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level.upper(),
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structlog logger backed by the standard library logger ``name``.

    Until the host configures logging, nothing is written to stdout: debug and
    info events are dropped by the unconfigured standard library logger.
    """
    return structlog.wrap_logger(logging.getLogger(name))
