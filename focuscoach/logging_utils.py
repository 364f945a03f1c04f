from __future__ import annotations

import logging
import sys
from datetime import datetime, tzinfo
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

STATUS_LOGGER = "focuscoach.status"


class _ZonedFormatter(logging.Formatter):
    """Formats record times in a fixed timezone instead of the process local time."""

    def __init__(self, fmt: str, datefmt: str, tz: Optional[tzinfo]):
        super().__init__(fmt, datefmt)
        self._tz = tz

    def formatTime(self, record, datefmt=None):
        return datetime.fromtimestamp(record.created, tz=self._tz).strftime(datefmt or self.datefmt)


def init_logger(name: str, log_dir: Path, level: str = "INFO", console_level: str = "WARNING") -> logging.Logger:
    log_dir.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger(f"focuscoach.{name}")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not logger.handlers:
        log_path = log_dir / f"{name}.log"
        file_handler = RotatingFileHandler(log_path, maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        file_handler.setFormatter(formatter)

        # stderr only; status lines own stdout
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(getattr(logging, console_level.upper(), logging.WARNING))

        logger.addHandler(file_handler)
        logger.addHandler(console_handler)

    return logger


def init_status_logger(tz: Optional[tzinfo] = None, stream=None) -> logging.Logger:
    """Logger for the short "[HH:MM:SS] message" lines a running session prints to stdout."""
    logger = logging.getLogger(STATUS_LOGGER)
    logger.setLevel(logging.INFO)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(_ZonedFormatter("[%(asctime)s] %(message)s", "%H:%M:%S", tz))
    logger.addHandler(handler)
    return logger
