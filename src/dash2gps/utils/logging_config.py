"""Logging setup for dash2gps.

All log output goes to stderr (or a file); stdout carries nothing but
coordinate lines so it can be piped straight into other tools.
"""

import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "dash2gps"

PLAIN_FORMAT = "%(asctime)s %(levelname)-8s %(threadName)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_logger: Optional[logging.Logger] = None


def _console_handler(rich_formatting: bool) -> logging.Handler:
    if not rich_formatting:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt=DATE_FORMAT))
        return handler

    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    rich_formatting: bool = True,
) -> logging.Logger:
    """
    Configure the ``dash2gps`` logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: DEBUG, INFO, WARNING or ERROR
        log_file: Also append plain-text logs to this file
        rich_formatting: Pretty console output via rich

    Returns:
        The configured logger
    """
    global _logger

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())

    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    logger.addHandler(_console_handler(rich_formatting))

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """Return the dash2gps logger, configuring defaults on first use."""
    if _logger is None:
        return setup_logging()
    return _logger
