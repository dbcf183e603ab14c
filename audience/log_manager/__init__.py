"""
Logging package for the audience filter API.

Loggers propagate to the host application by default. Setting
AUDIENCE_LOG_DIR additionally writes rotating log files there.
"""

from .manager import LoggingManager, get_logger, configure_logging, get_logging_manager

__all__ = ['LoggingManager', 'get_logger', 'configure_logging', 'get_logging_manager']
