from __future__ import annotations

import logging
from io import StringIO

from sheetpipe.logging.init import (
    LabeledFormatter,
    get_logger,
    log_summary,
    reset_logging,
    set_debug,
    setup_logging,
)


def test_setup_logging_creates_single_handler_logger():
    logger = setup_logging()
    assert logger.name == "sheetpipe"
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert logger.propagate is False
    # idempotent
    assert setup_logging() is logger
    assert len(logger.handlers) == 1


def test_logging_labeled_prefixes():
    out = StringIO()
    logger = setup_logging(out)
    logger.info("Test info message")
    logger.warning("Test warning message")
    logger.error("Test error message")
    log_summary("Test summary message")
    logger.debug("hidden at INFO")
    assert out.getvalue().splitlines() == [
        "INFO Test info message",
        "WARN Test warning message",
        "ERROR Test error message",
        "SUMMARY Test summary message",
    ]


def test_child_loggers_use_labeled_output():
    out = StringIO()
    setup_logging(out)
    set_debug(True)
    logging.getLogger("sheetpipe.stream.codec").debug("frame written")
    assert out.getvalue() == "DEBUG frame written\n"


def test_logs_go_to_stderr_not_stdout(capsys):
    setup_logging().info("to stderr")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == "INFO to stderr\n"


def test_get_logger_returns_configured_logger():
    logger = setup_logging()
    assert get_logger() is logger
    reset_logging()
    assert get_logger() is not None


def test_unknown_level_falls_back_to_level_name():
    record = logging.LogRecord("x", 35, __file__, 1, "custom", None, None)
    assert LabeledFormatter().format(record) == "Level 35 custom"
