"""Tests for logging setup."""

import logging

import pytest

from edu_studio.logging import configure_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_configure_logging_replaces_handlers(restore_root_logger):
    root = restore_root_logger
    configure_logging("debug")
    configure_logging("debug")

    assert len(root.handlers) == 1
    assert root.level == logging.DEBUG
    assert logging.getLogger("azure").level == logging.WARNING


def test_configure_logging_writes_file(restore_root_logger, tmp_path):
    log_file = tmp_path / "studio.log"

    configure_logging("INFO", log_file=str(log_file))
    logging.getLogger("edu_studio.test").info("hello studio")
    for handler in restore_root_logger.handlers:
        handler.flush()

    assert "hello studio" in log_file.read_text(encoding="utf-8")
