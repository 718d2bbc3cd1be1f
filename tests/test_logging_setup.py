import logging
import logging.handlers
from pathlib import Path

from page_adblocker.logging_setup import LOGGER_NAME, setup_logging


def _close(logger):
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def test_setup_logging_writes_rotating_file(tmp_path: Path):
    log_file = tmp_path / "logs" / "page_adblocker.log"
    logger = setup_logging("WARNING", log_file=str(log_file))
    try:
        assert logger.name == LOGGER_NAME
        assert logger.propagate is False
        file_handlers = [h for h in logger.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].level == logging.DEBUG

        stream_handlers = [h for h in logger.handlers if type(h) is logging.StreamHandler]
        assert stream_handlers[0].level == logging.WARNING

        logger.getChild("Engine").info("hello from child")
        file_handlers[0].flush()
        assert "hello from child" in log_file.read_text(encoding="utf-8")
    finally:
        _close(logger)


def test_setup_logging_console_only_and_idempotent():
    setup_logging("INFO", log_file=None)
    logger = setup_logging("nonsense", log_file=None)
    try:
        assert len(logger.handlers) == 1
        assert logger.handlers[0].level == logging.INFO
    finally:
        _close(logger)
