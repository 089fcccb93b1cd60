"""Centralized logging configuration.

Modules log through logging.getLogger(__name__) and pass structured context
via extra={...}. The formatter below appends those fields as key=value pairs
so security events stay greppable without a JSON log pipeline.
"""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Attributes every LogRecord carries; anything else arrived through extra=
_RESERVED = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}


class ContextFormatter(logging.Formatter):
    """Formatter that appends extra={...} fields to the message."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED and not key.startswith("_")
        }
        if not context:
            return line
        fields = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        return f"{line} [{fields}]"


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    """Get a configured logger instance."""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level))

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(ContextFormatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger


def configure_logging(level: str = "INFO", logger_name: Optional[str] = "shareguard") -> logging.Logger:
    """Attach the context formatter to the package logger.

    Idempotent: a second call only adjusts the level.
    """
    return get_logger(logger_name, level)
