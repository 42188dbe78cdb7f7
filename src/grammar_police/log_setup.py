"""
Logging setup: a rotating file under ~/Library/Logs plus stderr.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

LOGGER_NAME = "grammar_police"
LOG_FORMAT = "%(asctime)s.%(msecs)03d [%(levelname)s] [%(name)s:%(lineno)d] %(funcName)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 5 * 1024 * 1024
BACKUP_COUNT = 5


def default_log_dir() -> Path:
    """Where macOS apps keep their logs."""
    return Path.home() / "Library" / "Logs" / "GrammarPolice"


def configure_logging(debug: bool = False, log_dir: Optional[Path] = None, console: bool = True) -> logging.Logger:
    """Attach handlers to the package logger. Safe to call again to change the level."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    directory = log_dir or default_log_dir()
    try:
        directory.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            directory / "grammar_police.log",
            maxBytes=MAX_LOG_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as e:
        # Fall back to console-only logging
        logging.getLogger(__name__).warning("Could not open log file in %s: %s", directory, e)
        console = True

    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    return logger


def set_debug(debug: bool) -> None:
    """Switch the package logger between DEBUG and INFO."""
    logging.getLogger(LOGGER_NAME).setLevel(logging.DEBUG if debug else logging.INFO)
