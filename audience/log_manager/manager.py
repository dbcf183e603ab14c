#!/usr/bin/env python3
"""
Centralized Logging Manager for the audience filter API.

Compilers and stores ask for loggers here instead of calling
logging.getLogger directly so that naming, levels and file output stay
consistent across components.
"""

import os
import json
import logging
import logging.handlers
from pathlib import Path
from typing import Optional, Dict, Any


class LoggingManager:
    """
    Manages loggers for all audience components.

    Features:
    - Component-scoped logger names (audience.<component>.<name>)
    - Optional rotating file output under AUDIENCE_LOG_DIR
    - Separate error-only log file
    - Debug mode support via AUDIENCE_DEBUG
    """

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize the logging manager (singleton)"""
        if not self._initialized:
            log_dir = os.environ.get('AUDIENCE_LOG_DIR')
            self.log_dir = Path(log_dir).expanduser() if log_dir else None
            self.debug_mode = os.environ.get('AUDIENCE_DEBUG', '').lower() in ('1', 'true', 'yes')
            self.loggers = {}
            self._initialized = True

            if self.log_dir:
                self._ensure_log_directories()

    def _ensure_log_directories(self):
        """Create necessary log directories"""
        for directory in (self.log_dir, self.log_dir / 'filters', self.log_dir / 'stores'):
            directory.mkdir(parents=True, exist_ok=True)

    def get_logger(self, name: str, component: Optional[str] = None) -> logging.Logger:
        """
        Get or create a logger for a specific component.

        Args:
            name: Logger name (e.g., 'RelationalFilterBackend')
            component: Component category ('filters', 'stores', None for main)

        Returns:
            Configured logger instance
        """
        logger_key = f"{component}.{name}" if component else name

        if logger_key in self.loggers:
            return self.loggers[logger_key]

        logger = logging.getLogger(f"audience.{logger_key}")
        logger.setLevel(logging.DEBUG if self.debug_mode else logging.INFO)

        if self.log_dir:
            self._attach_file_handlers(logger, name, component)

        self.loggers[logger_key] = logger
        return logger

    def _attach_file_handlers(self, logger: logging.Logger, name: str, component: Optional[str]):
        """Add rotating file handlers for a logger."""
        if component in ('filters', 'stores'):
            log_file = self.log_dir / component / f"{name.lower()}.log"
        else:
            log_file = self.log_dir / f"{name.lower()}.log"

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )

        if self.debug_mode:
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
        else:
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        error_handler = logging.handlers.RotatingFileHandler(
            self.log_dir / 'error.log',
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        error_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d]\n%(message)s\n',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        error_handler.setLevel(logging.ERROR)
        logger.addHandler(error_handler)

    def log_with_context(self, logger: logging.Logger, level: int, message: str,
                         context: Optional[Dict[str, Any]] = None):
        """
        Log a message with additional context.

        Args:
            logger: Logger instance
            level: Log level
            message: Log message
            context: Additional context dict
        """
        if context:
            context_str = json.dumps(context, default=str)
            full_message = f"{message} | Context: {context_str}"
        else:
            full_message = message

        logger.log(level, full_message)


# Singleton instance
_logging_manager = None


def get_logging_manager() -> LoggingManager:
    """Get the singleton LoggingManager instance"""
    global _logging_manager
    if _logging_manager is None:
        _logging_manager = LoggingManager()
    return _logging_manager


def get_logger(name: str, component: Optional[str] = None) -> logging.Logger:
    """
    Convenience function to get a logger.

    Args:
        name: Logger name
        component: Component type ('filters', 'stores', or None)

    Returns:
        Configured logger
    """
    manager = get_logging_manager()
    return manager.get_logger(name, component)


def configure_logging():
    """Initialize logging system (called once at startup)"""
    return get_logging_manager()


# Library logging stays silent unless the host configures handlers
logging.getLogger('audience').addHandler(logging.NullHandler())
