"""Tests for logging configuration."""
import logging

from poker_tracker.utils.logger import PACKAGE_LOGGER, configure_logging, get_logger


class TestGetLogger:
    """Test module loggers share the package handler."""

    def test_module_loggers_have_no_own_handlers(self):
        logger = get_logger("poker_tracker.ledger.sessions")

        assert logger.name == "poker_tracker.ledger.sessions"
        assert logger.handlers == []
        assert logger.propagate is True
        assert len(logging.getLogger(PACKAGE_LOGGER).handlers) == 1

    def test_repeated_calls_add_one_handler(self):
        for _ in range(3):
            get_logger("poker_tracker.main")
            configure_logging()

        assert len(logging.getLogger(PACKAGE_LOGGER).handlers) == 1

    def test_outside_names_nested_under_package(self):
        assert get_logger("__main__").name == "poker_tracker.__main__"

    def test_default_is_package_logger(self):
        assert get_logger() is logging.getLogger(PACKAGE_LOGGER)

    def test_configure_level(self):
        package = logging.getLogger(PACKAGE_LOGGER)
        previous = package.level
        try:
            configure_logging("debug")
            assert package.level == logging.DEBUG
            configure_logging("nonsense")
            assert package.level == logging.INFO
        finally:
            package.setLevel(previous)
