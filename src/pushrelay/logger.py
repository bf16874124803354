"""Log level parsing and logger construction."""

import logging
import sys
from datetime import datetime
from typing import TextIO

LOGGER_NAME = "pushrelay"
DEFAULT_PREFIX = "[push] "
DEFAULT_LEVEL = "info"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}

_LEVEL_NAMES = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARNING",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "FATAL",
}


def parse_log_level(name: str) -> int:
    """Map a level name (debug, info, warn, error, fatal) to a logging level.

    Matching is case-insensitive. Raises ValueError for anything else.
    """
    try:
        return _LEVELS[name.strip().lower()]
    except (KeyError, AttributeError):
        msg = f"invalid log level {name!r} (debug, info, warn, error, fatal)"
        raise ValueError(msg) from None


class PrefixFormatter(logging.Formatter):
    """Formats records as ``<prefix><date> <time.micro> <LEVEL>: <message>``."""

    def __init__(self, prefix: str = DEFAULT_PREFIX) -> None:
        super().__init__()
        self.prefix = prefix

    def formatTime(  # noqa: N802
        self,
        record: logging.LogRecord,
        datefmt: str | None = None,
    ) -> str:
        created = datetime.fromtimestamp(record.created)
        return created.strftime(datefmt or "%Y/%m/%d %H:%M:%S.%f")

    def format(self, record: logging.LogRecord) -> str:
        level = _LEVEL_NAMES.get(record.levelno, record.levelname)
        line = f"{self.prefix}{self.formatTime(record)} {level}: {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def build_logger(
    prefix: str = DEFAULT_PREFIX,
    level: int = logging.INFO,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Configure the ``pushrelay`` logger and return it.

    Existing handlers are replaced, so calling this twice does not
    duplicate output. The logger does not propagate to the root logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(PrefixFormatter(prefix))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
