"""
structlog setup for hosts embedding the signature core.

The core never configures logging on import; a host calls
``configure_logging()`` once, and every component logs through
``get_logger(__name__)``.
"""

import logging
import sys
from typing import cast

import structlog
from structlog.types import Processor

from medsig.core.config import get_settings


def configure_logging(level: str | None = None, *, json_logs: bool | None = None) -> None:
    """
    Route structlog through the stdlib logging module.

    ``level`` defaults to ``Settings.log_level``. ``json_logs`` defaults to
    true outside the development environment; development gets the colored
    console renderer.
    """
    settings = get_settings()
    if json_logs is None:
        json_logs = settings.environment != "development"

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=True)]

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
        level=getattr(logging, (level or settings.log_level).upper()),
        force=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Module logger; components bind their own context per call."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
