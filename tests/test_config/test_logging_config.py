"""Tests for logging setup."""

from __future__ import annotations

import logging
import logging.handlers

import pytest

from replybot.config.logging_config import NOISY_LOGGERS, setup_logging


@pytest.fixture
def app_logger():
    logger = logging.getLogger("replybot")
    saved_handlers, saved_level = logger.handlers[:], logger.level
    logger.handlers.clear()
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = saved_handlers
    logger.setLevel(saved_level)


class TestSetupLogging:
    def test_console_only_without_log_dir(self, app_logger):
        setup_logging()
        assert len(app_logger.handlers) == 1
        assert app_logger.level == logging.INFO

    def test_rotating_file_in_log_dir(self, app_logger, tmp_path):
        setup_logging(log_dir=tmp_path / "logs", log_file="bot.log")

        file_handlers = [
            h for h in app_logger.handlers if isinstance(h, logging.handlers.RotatingFileHandler)
        ]
        assert len(file_handlers) == 1
        assert file_handlers[0].maxBytes == 10 * 1024 * 1024
        logging.getLogger("replybot.jobs.worker").info("Job post-d1 succeeded")
        file_handlers[0].flush()
        assert "Job post-d1 succeeded" in (tmp_path / "logs" / "bot.log").read_text(encoding="utf-8")

    def test_repeat_call_updates_level_only(self, app_logger):
        setup_logging()
        setup_logging(level="debug")
        assert len(app_logger.handlers) == 1
        assert app_logger.level == logging.DEBUG
        assert app_logger.handlers[0].level == logging.DEBUG

    def test_unknown_level_name(self, app_logger):
        with pytest.raises(ValueError):
            setup_logging(level="chatty")

    def test_client_libraries_quieted(self, app_logger):
        setup_logging(level=logging.DEBUG)
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING
