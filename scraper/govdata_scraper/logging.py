"""
Centralized structlog configuration for the ingestion service.

Provides JSON-formatted logs with environment context so worker, beat
and API containers can be filtered together in production.
"""

from __future__ import annotations

import logging
import sys

import structlog

from .config import settings

LOGGER_NAME = "govdata-scraper"


def _normalize_log_level(level: str | None, environment: str) -> int:
    env = environment.lower()
    if level:
        normalized = level.strip().upper()
    else:
        normalized = "INFO" if env == "production" else "DEBUG"
    return logging.getLevelNamesMapping().get(normalized, logging.INFO)


def configure_logging() -> None:
    """
    Configure structlog with JSON output to stdout.

    Events are rendered by structlog and handed to a stdlib logger, so each
    line carries the logger name and the stdlib handlers only print it.
    """
    resolved_level = _normalize_log_level(settings.log_level, settings.environment)
    logging.basicConfig(level=resolved_level, format="%(message)s", stream=sys.stdout)
    logging.getLogger(LOGGER_NAME).setLevel(resolved_level)
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.EventRenamer("message"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(resolved_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


# Configure logging at module import time
configure_logging()

logger = structlog.get_logger(LOGGER_NAME).bind(
    service=LOGGER_NAME,
    environment=settings.environment,
)
