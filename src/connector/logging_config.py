"""Logging setup for the connector package."""

import logging

from rich.logging import RichHandler

from src.connector.config import config

PACKAGE_LOGGER = "src.connector"


def setup_logging(level: str | None = None) -> logging.Logger:
    """
    Attach a rich console handler to the package logger.

    Calling this more than once replaces the previously installed handler
    instead of stacking duplicates.

    Args:
        level: Log level name; defaults to the configured log_level

    Returns:
        The configured package logger

    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level or ("DEBUG" if config.debug else config.log_level))

    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    return logger
