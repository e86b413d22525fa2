"""
Logging configuration.

Everything logs through structlog; stdlib logging only carries the
rendered lines to stdout (and picks up uvicorn/sqlalchemy output).

Usage:
    from flagforge.core.logging import configure_logging

    configure_logging(settings)
    structlog.get_logger().info("Feature created", key="show-banner")
"""

from __future__ import annotations

import logging
import sys

import structlog

from flagforge.core.config import Settings


def configure_logging(settings: Settings) -> None:
    """Configure structlog once at startup from LOG_LEVEL / LOG_FORMAT."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.log_format == "json":
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
