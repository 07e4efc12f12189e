"""
Centralized logging utility.

Loggers write one line per record to stderr. Context passed through
``extra=`` is appended to the line as ``key=value`` pairs, so audit and
request fields are visible without a structured log sink.
"""

import logging
import os
import sys
from typing import Optional

LOG_LEVEL = os.getenv("MYITR_LOG_LEVEL", "INFO").upper()

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Attributes every LogRecord carries; anything else came from ``extra=``
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class ContextFormatter(logging.Formatter):
    """Formatter that renders ``extra`` context after the message."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        if not context:
            return line
        pairs = " ".join(f"{key}={value!r}" for key, value in context.items())
        return f"{line} | {pairs}"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Create or retrieve a configured logger instance.

    Args:
        name (Optional[str]): Logger name (usually __name__).

    Returns:
        logging.Logger: Configured logger instance.
    """
    logger = logging.getLogger(name)
    logger.setLevel(LOG_LEVEL)

    # Uvicorn reloads re-import modules
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ContextFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False

    return logger
