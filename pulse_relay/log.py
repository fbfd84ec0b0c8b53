"""Logging configuration."""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

APP_LOGGER = __name__.split(".")[0]


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Third-party loggers (bleak, aiohttp, websockets) stay at WARNING; the
    application logger uses the requested level.

    Args:
        level: Log level name, case-insensitive
    """
    level_upper = level.upper()
    invalid_level = None if level_upper in VALID_LEVELS else level
    if invalid_level:
        level_upper = "INFO"

    logging.basicConfig(
        level=logging.WARNING,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stderr,
        force=True,
    )

    app_logger = logging.getLogger(APP_LOGGER)
    app_logger.setLevel(getattr(logging, level_upper))

    if invalid_level:
        app_logger.warning("Unknown log level '%s', defaulting to INFO", invalid_level)
