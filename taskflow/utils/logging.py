"""
Logging configuration utilities for TaskFlow.

Provides configurable logging with file rotation support.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from ..config import TaskflowConfig

DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

# Third-party loggers that log every request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore")


def _configure_root(
    level: int,
    log_format: str,
    log_file: Optional[str],
    max_bytes: int,
    backup_count: int,
) -> None:
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Request lines from httpx only when we are debugging ourselves.
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)


def setup_logging(config: Optional[TaskflowConfig] = None) -> None:
    """
    Configure logging based on TaskflowConfig settings.

    Args:
        config: TaskflowConfig instance. If None, uses sensible defaults.

    Example:
        config = TaskflowConfig.load("taskflow.yaml")
        setup_logging(config)
    """
    if config is None:
        config = TaskflowConfig(log_level="INFO")

    _configure_root(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        log_format=config.log_format,
        log_file=config.log_file or None,
        max_bytes=config.log_max_bytes,
        backup_count=config.log_backup_count,
    )


def setup_logging_from_dict(config_dict: dict) -> None:
    """
    Configure logging from the ``logging`` section of a config dictionary.

    Args:
        config_dict: Dictionary with ``level``, ``file``, ``format``,
            ``max_bytes`` and ``backup_count`` keys (all optional).
    """
    level_str = config_dict.get("level", "INFO").upper()
    _configure_root(
        level=getattr(logging, level_str, logging.INFO),
        log_format=config_dict.get("format", DEFAULT_FORMAT),
        log_file=config_dict.get("file"),
        max_bytes=config_dict.get("max_bytes", 10485760),
        backup_count=config_dict.get("backup_count", 3),
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
