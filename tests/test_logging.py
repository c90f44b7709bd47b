"""Tests for logging configuration."""

import logging

import pytest

from defichat.config import Settings
from defichat.utils.logging import NOISY_LOGGERS, LogConfig, get_logger, setup_logging


@pytest.fixture
def restore_logging():
    """Put root and client logger levels back after a test reconfigures them."""
    root = logging.getLogger()
    saved = {name: logging.getLogger(name).level for name in NOISY_LOGGERS}
    saved_root, saved_handlers = root.level, root.handlers[:]
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)
    root.setLevel(saved_root)
    root.handlers[:] = saved_handlers


class TestLogging:
    """Tests for setup_logging and get_logger."""

    def test_config_from_settings(self):
        """Test that engine settings drive both log levels."""
        config = LogConfig.from_settings(Settings(log_level="DEBUG", library_log_level="ERROR"))

        assert config.level == "DEBUG"
        assert config.library_level == "ERROR"
        assert "httpx" in config.quiet_loggers

    def test_client_loggers_are_quietened(self, restore_logging):
        """Test that model and HTTP client loggers stay at the library level."""
        setup_logging(LogConfig(level="DEBUG"))

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("langgraph").level == logging.WARNING

    def test_custom_quiet_list(self, restore_logging):
        """Test that only the configured loggers are raised."""
        logging.getLogger("web3").setLevel(logging.NOTSET)

        setup_logging(LogConfig(library_level="ERROR", quiet_loggers=["anthropic"]))

        assert logging.getLogger("anthropic").level == logging.ERROR
        assert logging.getLogger("web3").level == logging.NOTSET

    def test_get_logger_level(self, monkeypatch):
        """Test explicit and environment levels."""
        monkeypatch.setenv("LOG_LEVEL", "warning")

        assert get_logger("defichat.test.env").level == logging.WARNING
        assert get_logger("defichat.test.explicit", "debug").level == logging.DEBUG
