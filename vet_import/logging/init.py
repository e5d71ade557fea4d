from __future__ import annotations

import logging
import sys

"""Logging initialization with labeled prefixes.

Every module logs through ``logging.getLogger(__name__)``; the handler lives on
the package logger ``vet_import`` so all of them share one stdout stream with
the INFO|WARN|ERROR|DEBUG|SUMMARY prefixes. Standard logging only.

``--verbose`` lowers the package logger to DEBUG and attaches the same handler
to the HTTP client loggers, so request lines appear in the labelled stream.
"""

__all__ = [
    "setup_logging",
    "get_logger",
    "log_summary",
    "enable_debug",
    "reset_logging",
    "SUMMARY_LEVEL",
    "LOGGER_NAME",
    "HTTP_LOGGER_NAMES",
]

# Custom SUMMARY level (between INFO=20 and WARNING=30)
SUMMARY_LEVEL = 25
LOGGER_NAME = "vet_import"
HTTP_LOGGER_NAMES = ("httpx",)

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """``LABEL message``; WARNING is shortened to WARN."""

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        return f"{label} {record.getMessage()}"


def _stdout_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(LabeledFormatter())
    return handler


def _detach(logger: logging.Logger) -> None:
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)


def setup_logging() -> logging.Logger:
    """Configure the package logger (idempotent).

    Returns:
        The ``vet_import`` logger with a single stdout handler at INFO.
    """
    global _logger
    if _logger is not None:
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)
    _detach(logger)
    logger.addHandler(_stdout_handler(logging.INFO))
    # root へ流すと二重出力になる
    logger.propagate = False

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    if _logger is None:
        return setup_logging()
    return _logger


def enable_debug() -> None:
    """Switch to DEBUG (``--verbose``) and surface HTTP client request logs."""
    logger = get_logger()
    logger.setLevel(logging.DEBUG)
    for handler in logger.handlers:
        handler.setLevel(logging.DEBUG)
    for name in HTTP_LOGGER_NAMES:
        http_logger = logging.getLogger(name)
        _detach(http_logger)
        http_logger.addHandler(logger.handlers[0])
        http_logger.setLevel(logging.INFO)
        http_logger.propagate = False
    logger.debug("verbose mode enabled")


def log_summary(message: str) -> None:
    """Log at SUMMARY level; the label comes from the formatter."""
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Drop handlers and global state. Mainly for tests."""
    global _logger
    for name in (LOGGER_NAME, *HTTP_LOGGER_NAMES):
        logger = logging.getLogger(name)
        _detach(logger)
        logger.setLevel(logging.NOTSET)
        logger.propagate = True
    _logger = None
