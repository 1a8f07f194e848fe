from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Package logging: one stdout handler, ``LABEL message`` lines.

LABEL is INFO|WARN|ERROR|SUMMARY (DEBUG/CRITICAL when they occur). Modules
log through ``logging.getLogger(__name__)``; every module lives under the
``reportsheets`` package logger, so setup_logging() configures them all.
"""

__all__ = [
    "LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "log_summary",
    "reset_logging",
]

LOGGER_NAME = "reportsheets"

# sits between INFO and WARNING so --debug off still prints it
SUMMARY_LEVEL = 25

_configured: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        label = self.LABELS.get(record.levelno, record.levelname)
        line = f"{label} {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(debug: bool = False, stream: TextIO | None = None) -> logging.Logger:
    """Install the labeled handler on the package logger.

    Calling it again only changes the level, so the CLI can switch on
    ``--debug`` after a library call already configured logging.
    """
    global _configured

    level = logging.DEBUG if debug else logging.INFO
    if _configured is not None:
        _configured.setLevel(level)
        for h in _configured.handlers:
            h.setLevel(level)
        return _configured

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for stale in list(logger.handlers):
        logger.removeHandler(stale)

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    # the root logger must not print these lines a second time
    logger.propagate = False

    _configured = logger
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Package logger (configured on first use), or one of its children."""
    base = _configured if _configured is not None else setup_logging()
    return base.getChild(name) if name else base


def log_summary(message: str) -> None:
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Drop the handler so the next setup_logging() binds a fresh stream (tests)."""
    global _configured
    if _configured is not None:
        for h in list(_configured.handlers):
            _configured.removeHandler(h)
    _configured = None
