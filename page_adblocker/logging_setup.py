from __future__ import annotations

import logging
import logging.handlers
import os
from typing import Optional

from .config import LOG_FILE

LOGGER_NAME = "PageAdBlocker"
_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"


def _resolve_level(level: Optional[str]) -> int:
    value = logging.getLevelName((level or "INFO").upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(level: str = "INFO", log_file: Optional[str] = LOG_FILE) -> logging.Logger:
    """Configure the package logger; pass ``log_file=None`` for console only."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    fmt = logging.Formatter(_FORMAT, datefmt="%H:%M:%S")

    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(fmt)
        logger.addHandler(file_handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(_resolve_level(level))
    stream_handler.setFormatter(fmt)
    logger.addHandler(stream_handler)

    return logger


__all__ = ["setup_logging", "LOGGER_NAME"]
