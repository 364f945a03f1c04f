"""Tests for the file/console loggers and the session status lines."""

import io
import logging
import re
from datetime import timedelta, timezone

from focuscoach.logging_utils import init_logger, init_status_logger


def test_init_logger_writes_file_and_keeps_console_quiet(tmp_path):
    logger = init_logger("file_console_split", tmp_path, "DEBUG")
    logger.info("sample recorded")
    for handler in logger.handlers:
        handler.flush()

    assert logger.name == "focuscoach.file_console_split"
    assert "sample recorded" in (tmp_path / "file_console_split.log").read_text(encoding="utf-8")
    console = [h for h in logger.handlers if type(h) is logging.StreamHandler]
    assert console and console[0].level == logging.WARNING


def test_init_logger_does_not_stack_handlers(tmp_path):
    first = init_logger("repeat", tmp_path)
    second = init_logger("repeat", tmp_path)
    assert first is second
    assert len(second.handlers) == 2


def test_status_logger_prints_timestamped_lines():
    stream = io.StringIO()
    status_log = init_status_logger(timezone(timedelta(hours=9)), stream=stream)

    status_log.info("status: %s", "Locked In")

    assert re.fullmatch(r"\[\d{2}:\d{2}:\d{2}\] status: Locked In\n", stream.getvalue())
    assert status_log.propagate is False


def test_status_logger_replaces_its_handler():
    init_status_logger(stream=io.StringIO())
    stream = io.StringIO()
    status_log = init_status_logger(stream=stream)

    status_log.info("session started")

    assert len(status_log.handlers) == 1
    assert stream.getvalue().endswith("session started\n")
