"""
Logging setup for CardQuill.

Modules log through ``logging.getLogger(__name__)``; applications call
``configure_logging`` once to attach a rich console handler (and optionally a
rotating file handler) to the ``cardquill`` logger.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "cardquill"

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _level_value(level: str) -> int:
    if not level or level.upper() not in _LEVELS:
        raise ValueError(f"Invalid log level: {level}")
    return getattr(logging, level.upper())


def get_logger(name: str) -> logging.Logger:
    """
    Get logger instance for module.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    if not name or not isinstance(name, str):
        raise ValueError("Logger name must be a non-empty string")
    return logging.getLogger(name)


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    use_rich: bool = True,
    console: Optional[Console] = None,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure logging for the ``cardquill`` package.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path (rotated)
        use_rich: Use a rich console handler instead of a plain stream handler
        console: Rich console to write to (stderr by default)
        max_file_size: Maximum log file size in bytes
        backup_count: Number of rotated files to keep

    Returns:
        The configured package logger
    """
    numeric_level = _level_value(level)
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    if use_rich:
        handler: logging.Handler = RichHandler(
            console=console or Console(stderr=True),
            show_time=True,
            show_path=True,
            markup=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%X]"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
    handler.setLevel(numeric_level)
    logger.addHandler(handler)

    if log_file:
        add_file_handler(logger, log_file, level, max_file_size, backup_count)

    return logger


def add_file_handler(
    logger: logging.Logger,
    file_path: Union[str, Path],
    level: str = "INFO",
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> RotatingFileHandler:
    """
    Add a rotating file handler to a logger.

    Args:
        logger: Logger instance
        file_path: Log file path
        level: Log level for this handler
        max_file_size: Maximum log file size in bytes
        backup_count: Number of backup files to keep

    Returns:
        The handler that was added
    """
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(path, maxBytes=max_file_size, backupCount=backup_count)
    file_handler.setLevel(_level_value(level))
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    logger.addHandler(file_handler)
    return file_handler
