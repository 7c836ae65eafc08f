"""Structured logging configuration.

Every module logs through the shared ``logger`` with an event name and
keyword context::

    from orchestrator.core.logging import logger

    logger.info("workflow_plan_generated", step_count=3)

Production and staging render JSON lines; other environments use the
coloured console renderer.
"""

import logging
import sys
from typing import List

import structlog

from orchestrator.core.config import (
    Environment,
    settings,
)


def _get_processors() -> List[structlog.typing.Processor]:
    """Build the processor chain shared by every renderer."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def setup_logging() -> None:
    """Configure structlog for the current environment."""
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    processors = _get_processors()
    if settings.LOG_FORMAT == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=settings.ENVIRONMENT != Environment.TEST,
    )


setup_logging()

logger = structlog.get_logger()
