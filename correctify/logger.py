"""Centralized logging configuration for Correctify.

Every module logs through a child of the ``Correctify`` logger so a single
call to :meth:`CorrectifyLogger.setup` controls console and file output for
the hotkey service, the CLI and the HTTP endpoint alike.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

ROOT_LOGGER_NAME = "Correctify"
PACKAGE_NAME = "correctify"


class CorrectifyLogger:
    """Centralized logger for Correctify."""

    _loggers: Dict[str, logging.Logger] = {}
    _default_level = logging.INFO
    _log_file: Optional[Path] = None
    _initialized = False

    @classmethod
    def setup(
        cls,
        level: int = logging.INFO,
        log_file: Optional[Path] = None,
        console: bool = True,
        max_bytes: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 3
    ) -> None:
        """Configure global logging settings.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_file: Optional path to log file (enables file logging)
            console: Whether to output to console (default: True)
            max_bytes: Maximum size of log file before rotation
            backup_count: Number of backup log files to keep
        """
        cls._default_level = level
        cls._log_file = log_file
        cls._initialized = True

        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        if console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)
            console_handler.setFormatter(formatter)
            root_logger.addHandler(console_handler)

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding='utf-8'
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get or create a logger for a specific module.

        Args:
            name: Logger name (typically __name__ of the module)

        Returns:
            Configured Logger instance
        """
        if not cls._initialized:
            cls.setup()

        if name not in cls._loggers:
            logger = logging.getLogger(cls.qualified_name(name))
            logger.setLevel(cls._default_level)
            cls._loggers[name] = logger

        return cls._loggers[name]

    @staticmethod
    def qualified_name(name: str) -> str:
        """Map a module name onto the logger tree, e.g. ``correctify.pipeline``
        becomes ``Correctify.pipeline``."""
        if name == PACKAGE_NAME:
            return ROOT_LOGGER_NAME
        if name.startswith(PACKAGE_NAME + "."):
            name = name[len(PACKAGE_NAME) + 1:]
        return f"{ROOT_LOGGER_NAME}.{name}"

    @classmethod
    def set_level(cls, level: int) -> None:
        """Change logging level for all loggers."""
        cls._default_level = level
        logging.getLogger(ROOT_LOGGER_NAME).setLevel(level)

        for logger in cls._loggers.values():
            logger.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module.

    Usage:
        from correctify.logger import get_logger
        logger = get_logger(__name__)
        logger.info("Something happened")
    """
    return CorrectifyLogger.get_logger(name)


def preview(text: str, limit: int = 80) -> str:
    """Shorten user text for debug logs."""
    flat = " ".join(text.split())
    return flat[:limit] + ("..." if len(flat) > limit else "")
