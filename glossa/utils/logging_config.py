"""structlog configuration for the application."""

import logging

import structlog


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog for console output.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ...)
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=True,
    )
