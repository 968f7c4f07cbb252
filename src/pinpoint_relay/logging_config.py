"""Logging setup for pinpoint-relay."""

import logging
import sys
from typing import TextIO

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s - %(message)s"


def configure_logging(level: int | str = logging.INFO, stream: TextIO | None = None) -> logging.Logger:
    """Attach a single stream handler to the package logger.

    Safe to call more than once; the previous handler is replaced.
    """
    logger = logging.getLogger("pinpoint_relay")
    for handler in list(logger.handlers):
        if getattr(handler, "_pinpoint_relay", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._pinpoint_relay = True
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
