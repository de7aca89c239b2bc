"""Logging configuration.

Every module logs through a child of the ``poker_tracker`` logger, which
owns the single stdout handler. Child loggers carry no handlers of their own
and propagate to it.
"""
import logging
import sys
from typing import Optional

from poker_tracker.config import config

PACKAGE_LOGGER = "poker_tracker"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach the stdout handler to the package logger and set its level.

    Safe to call repeatedly; the handler is only added once.

    Args:
        level: Level name; defaults to ``LOG_LEVEL`` from config.

    Returns:
        The package logger.
    """
    package = logging.getLogger(PACKAGE_LOGGER)
    if not package.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        package.addHandler(handler)
    package.setLevel(getattr(logging, (level or config.log_level).upper(), logging.INFO))
    return package


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger under the package logger.

    Args:
        name: Logger name, typically __name__ of the calling module. Names
            outside the package (``__main__`` when run with ``-m``) are
            nested under it.

    Returns:
        Logger instance.
    """
    package = logging.getLogger(PACKAGE_LOGGER)
    if not package.handlers:
        configure_logging()

    if not name or name == PACKAGE_LOGGER:
        return package
    if not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
