"""
Structured logging configuration using structlog.

JSON logs in production, colored console output in development. Monitoring
cycles bind ``user_id`` through contextvars so every log line emitted while
a cycle runs (including from concurrent city tasks) carries it.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from src.config.settings import get_settings


def setup_logging(level: str | None = None) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Override for the configured log level (e.g. "DEBUG").

    Usage:
        setup_logging()
        logger = structlog.get_logger(__name__)
        logger.info("Cycle finished", user_id="u1", alerts=3)
    """
    settings = get_settings()
    log_level = level or settings.log_level

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_production:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level),
    )

    for noisy in ("httpx", "httpcore", "asyncio", "asyncpg"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

