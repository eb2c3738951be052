"""Logging configuration helpers for the quiz service."""

import logging
from logging import Logger

import settings


def configure_logging(level: str | None = None) -> Logger:
    """Configure basic logging for the service and return its logger."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    return logging.getLogger("quiz_service")
