"""Shared log sink: stderr for warnings/errors, an append-only file for everything."""

import logging
import sys
from typing import Optional


LOGGER_NAME = "storage_wipe"
PROGRESS_LOGGER_NAME = "storage_wipe.progress"
FILE_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

_handlers = []


def setup_logging(log_file: Optional[str], level: int = logging.INFO) -> logging.Logger:
    """Attach the stderr and log-file handlers once per process.

    Calling it again replaces the handlers installed by the previous call.
    """
    logger = logging.getLogger(LOGGER_NAME)
    progress = logging.getLogger(PROGRESS_LOGGER_NAME)

    for handler in _handlers:
        logger.removeHandler(handler)
        progress.removeHandler(handler)
        handler.close()
    _handlers.clear()

    logger.setLevel(level)
    progress.setLevel(logging.INFO)
    progress.propagate = False

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(stderr_handler)
    _handlers.append(stderr_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        except OSError as e:
            logger.warning(f"Warning: cannot open log file {log_file}: {e}")
        else:
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
            logger.addHandler(file_handler)
            progress.addHandler(file_handler)
            _handlers.append(file_handler)

    return logger


def echo(line: str = "") -> None:
    """Print a progress line to stdout and mirror it into the log file."""
    print(line)
    if line:
        logging.getLogger(PROGRESS_LOGGER_NAME).info(line)
