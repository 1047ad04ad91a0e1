"""Structured Logging Configuration.

This module configures structlog once per process and hands out bound loggers.
Outputs JSON for production log aggregation and keeps event names snake_case
with key/value context.

Configuration:
- JSON output format (for production log aggregation)
- Context binding support (correlation IDs, request IDs, etc.)
- Log level from LOG_LEVEL (DEBUG, INFO, WARNING, ERROR, CRITICAL)
"""

import logging
import sys
from typing import Any

import structlog

_configured = False


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog processors and the stdlib root handler.

    Safe to call more than once; only the first call takes effect.

    Args:
        level: Minimum log level name.
        json_output: Render JSON (production) or console key/value (local dev).
    """
    global _configured
    if _configured:
        return

    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance for the given module.

    Args:
        name: Module name (typically __name__)

    Returns:
        structlog logger bound to the module name
    """
    return structlog.get_logger(name)
