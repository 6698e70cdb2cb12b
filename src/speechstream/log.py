"""Logging configuration for the speechstream client.

Modules log through ``logging.getLogger(__name__)``; applications call
``setup_logging`` once at startup.
"""

import logging
import os
import sys
from typing import Literal

# Default log format
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def setup_logging(
    name: str | None = None,
    level: LogLevel | str | None = None,
    format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """
    Configure logging and return a logger.

    Args:
        name: Logger name (typically __name__). If None, returns root logger.
        level: Log level. Defaults to LOG_LEVEL env var or INFO.
        format: Log format string.

    Returns:
        Configured logger instance.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")

    log_level = getattr(logging, str(level).upper(), logging.INFO)

    # Log to stderr so stdout stays free for transcript output
    logging.basicConfig(
        level=log_level,
        format=format,
        stream=sys.stderr,
    )

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    return logger
