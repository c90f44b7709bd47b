"""Logging configuration."""

import logging
import os
import sys

from pydantic import BaseModel, Field

from defichat.config import Settings

# Client and framework loggers that chatter at INFO on every model call or RPC request
NOISY_LOGGERS = ("anthropic", "httpx", "httpcore", "langchain", "langgraph", "web3", "uvicorn.access")


class LogConfig(BaseModel):
    """Logging configuration for the engine and the HTTP service."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    library_level: str = "WARNING"
    quiet_loggers: list[str] = Field(default_factory=lambda: list(NOISY_LOGGERS))

    @classmethod
    def from_settings(cls, settings: Settings) -> "LogConfig":
        """Build the logging config from engine settings."""
        return cls(level=settings.log_level, library_level=settings.library_log_level)


def setup_logging(config: LogConfig | None = None) -> None:
    """Configure the root logger and hold third-party clients at the library level."""
    if config is None:
        config = LogConfig.from_settings(Settings.from_env())

    logging.basicConfig(
        level=getattr(logging, config.level.upper()),
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stdout,
        force=True,
    )

    library_level = getattr(logging, config.library_level.upper())
    for name in config.quiet_loggers:
        logging.getLogger(name).setLevel(library_level)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a logger for a specific module.

    Args:
        name: Module name (typically __name__)
        level: Explicit level, otherwise LOG_LEVEL from the environment

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    log_level = level if level else os.getenv("LOG_LEVEL", "INFO")
    logger.setLevel(log_level.upper())

    return logger
