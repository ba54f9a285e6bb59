"""Tests for logging setup."""

import logging

import pytest

from phonebooth.logging_setup import setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Put the root logger back the way pytest left it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_setup_logging_writes_file(tmp_path):
    """Test records reach the log file at the configured level."""
    log_file = tmp_path / "logs" / "phoneboothd.log"
    setup_logging("DEBUG", log_file)

    logging.getLogger("phonebooth.test").debug("transformer started")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "transformer started" in log_file.read_text()
    assert logging.getLogger().level == logging.DEBUG


def test_setup_logging_replaces_handlers(tmp_path):
    """Test calling setup twice doesn't duplicate handlers."""
    setup_logging("INFO", tmp_path / "a.log")
    setup_logging("WARNING", tmp_path / "b.log")

    assert len(logging.getLogger().handlers) == 2
    assert logging.getLogger().level == logging.WARNING
