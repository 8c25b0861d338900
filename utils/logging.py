"""structlog setup for BidSync scripts."""

import logging
from typing import Optional

import structlog

from config.settings import settings


def configure_logging(level: Optional[str] = None) -> None:
    """Configure structlog with ISO timestamps and the console renderer.

    Args:
        level: Log level name, defaults to settings.log_level.
    """
    level_name = (level or settings.log_level or "INFO").upper()
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name, logging.INFO)),
    )
