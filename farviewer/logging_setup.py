"""Logging configuration.

The terminal belongs to the UI, so records go to a rotating log file by
default; stderr is opt-in (and the fallback when the file cannot be opened).
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
LOG_MAX_BYTES = 1_000_000
LOG_BACKUP_COUNT = 3

_LEVEL_MAP: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def level_for_name(name: str) -> int:
    return _LEVEL_MAP.get(name.casefold(), logging.WARNING)


def configure_logging(level: str = "warning", file: Path | None = None, include_stderr: bool = False) -> None:
    """Configure root logging handlers for one run."""
    numeric_level = level_for_name(level)
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    file_handler_added = False
    if file is not None:
        try:
            file_path = Path(file).expanduser()
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                file_path,
                maxBytes=LOG_MAX_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            file_handler_added = True
        except OSError as exc:
            sys.stderr.write(f"Warning: could not open log file {file}: {exc}\n")

    if include_stderr or not file_handler_added:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(numeric_level)
        stderr_handler.setFormatter(formatter)
        root_logger.addHandler(stderr_handler)


__all__ = ["configure_logging", "level_for_name"]
