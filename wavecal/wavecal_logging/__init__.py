"""
Logging system for the wave calendar.

Provides structured logging with JSON format, rotating file handlers,
and context injection.
"""

from .structured_logger import (
    get_logger,
    configure_logging,
    set_log_level,
    WaveCalLogger,
    LogContext,
    JSONFormatter,
)

__all__ = [
    'get_logger',
    'configure_logging',
    'set_log_level',
    'WaveCalLogger',
    'LogContext',
    'JSONFormatter',
]
