"""Tests for the logging helper."""

import logging

import pytest

from writer_chat.utils import LOG_FILENAME, setup_logging


@pytest.fixture
def clean_root_logger():
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in saved_handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(saved_level)


def test_setup_logging_writes_file_once(tmp_path, clean_root_logger):
    setup_logging(str(tmp_path), logging.INFO)
    setup_logging(str(tmp_path), logging.INFO)

    file_handlers = [h for h in clean_root_logger.handlers if isinstance(h, logging.FileHandler)]
    assert len([h for h in file_handlers if h.baseFilename == str(tmp_path / LOG_FILENAME)]) == 1

    logging.getLogger("writer_chat.test").info("hello from the test")
    for handler in file_handlers:
        handler.flush()
    assert "hello from the test" in (tmp_path / LOG_FILENAME).read_text(encoding="utf-8")


def test_setup_logging_without_directory(clean_root_logger):
    setup_logging(None, logging.DEBUG)
    assert clean_root_logger.level == logging.DEBUG
