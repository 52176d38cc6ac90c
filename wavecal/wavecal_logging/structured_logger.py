"""
Structured JSON logging for the wave calendar.

Provides:
- JSON structured logging
- Rotating file handlers (optional, size based)
- Context injection (frame step, simulated time)
- Per-module log levels
- Timing helpers for the per-frame budget
"""

import logging
import logging.handlers
import json
import os
import sys
import time
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from contextlib import contextmanager
import threading


ROOT_LOGGER_NAME = 'wavecal'

# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = frozenset([
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'message', 'pathname', 'process', 'processName',
    'relativeCreated', 'thread', 'threadName', 'exc_info',
    'exc_text', 'stack_info', 'context', 'taskName',
])


# ============================================================================
# JSON Formatter
# ============================================================================

class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def __init__(self, include_context: bool = True):
        super().__init__()
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if self.include_context and hasattr(record, 'context'):
            log_data['context'] = record.context

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


# ============================================================================
# Log Context
# ============================================================================

class LogContext:
    """Thread-local context for logging."""

    _context = threading.local()

    @classmethod
    def get(cls) -> Dict[str, Any]:
        """Get current context."""
        if not hasattr(cls._context, 'data'):
            cls._context.data = {}
        return cls._context.data.copy()

    @classmethod
    def set(cls, **kwargs):
        """Set context fields."""
        if not hasattr(cls._context, 'data'):
            cls._context.data = {}
        cls._context.data.update(kwargs)

    @classmethod
    @contextmanager
    def bind(cls, **kwargs):
        """Temporarily bind context."""
        old_context = cls.get()
        cls.set(**kwargs)
        try:
            yield
        finally:
            cls._context.data = old_context


class ContextFilter(logging.Filter):
    """Inject context into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = LogContext.get()
        if context:
            record.context = context
        return True


# ============================================================================
# Wave Calendar Logger
# ============================================================================

class WaveCalLogger(logging.LoggerAdapter):
    """
    Logger adapter with context support and timing helpers.
    """

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg, kwargs):
        """Merge bound context into the record extras."""
        context = LogContext.get()
        if context:
            kwargs['extra'] = {**context, **kwargs.get('extra', {})}
        return msg, kwargs

    def log_metric(self, metric_name: str, value: float, **tags):
        """Log a named metric value at DEBUG."""
        self.debug(
            f"METRIC: {metric_name}={value}",
            extra={'metric_name': metric_name, 'metric_value': value, **tags}
        )

    def log_timing(self, operation: str, duration: float, **tags):
        """Log operation timing at DEBUG."""
        self.debug(
            f"TIMING: {operation} took {duration:.4f}s",
            extra={'operation': operation, 'duration': duration, **tags}
        )

    @contextmanager
    def timer(self, operation: str, **tags):
        """
        Time an operation.

        Yields a dict whose 'duration' is filled in when the block exits.

        Usage:
            with logger.timer('integrate') as timing:
                ...
            metrics.record('integrate', timing['duration'])
        """
        timing = {'operation': operation, 'duration': 0.0}
        start = time.perf_counter()
        try:
            yield timing
        finally:
            timing['duration'] = time.perf_counter() - start
            self.log_timing(operation, timing['duration'], **tags)


# ============================================================================
# Logger Configuration
# ============================================================================

_loggers: Dict[str, WaveCalLogger] = {}
_configured = False


def configure_logging(
    log_dir: Optional[str] = None,
    level: str = 'INFO',
    console_output: bool = True,
    json_format: bool = True,
    rotate_size: int = 10 * 1024 * 1024,
    rotate_count: int = 5,
    per_module_levels: Optional[Dict[str, str]] = None
):
    """
    Configure the 'wavecal' logger tree.

    Args:
        log_dir: Directory for log files (None = no file handlers)
        level: Default log level
        console_output: Whether to log to console
        json_format: Whether file handlers use JSON format
        rotate_size: Max size per log file (bytes)
        rotate_count: Number of backup files
        per_module_levels: Module-specific log levels
    """
    global _configured

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    context_filter = ContextFilter()
    text_format = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, 'wavecal.log'),
            maxBytes=rotate_size,
            backupCount=rotate_count
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter() if json_format else text_format)
        file_handler.addFilter(context_filter)
        root_logger.addHandler(file_handler)

        error_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, 'wavecal_errors.log'),
            maxBytes=rotate_size,
            backupCount=rotate_count
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(JSONFormatter() if json_format else text_format)
        error_handler.addFilter(context_filter)
        root_logger.addHandler(error_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, level.upper()))
        console_handler.setFormatter(
            logging.Formatter('%(levelname)s - %(name)s - %(message)s')
        )
        console_handler.addFilter(context_filter)
        root_logger.addHandler(console_handler)

    if per_module_levels:
        for module, module_level in per_module_levels.items():
            logging.getLogger(f'{ROOT_LOGGER_NAME}.{module}').setLevel(
                getattr(logging, module_level.upper())
            )

    _configured = True

    root_logger.debug("Logging configured", extra={
        'log_dir': log_dir,
        'level': level,
        'json_format': json_format
    })


def get_logger(name: str) -> WaveCalLogger:
    """
    Get or create a logger for a module.

    Names already under the 'wavecal' package are used as-is; anything else
    is nested below it.

    Args:
        name: Logger name (typically __name__)

    Returns:
        WaveCalLogger instance
    """
    if not _configured:
        configure_logging()

    if name in _loggers:
        return _loggers[name]

    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + '.'):
        full_name = name
    else:
        full_name = f'{ROOT_LOGGER_NAME}.{name}'

    adapter = WaveCalLogger(logging.getLogger(full_name))
    _loggers[name] = adapter
    return adapter


def set_log_level(level: str, module: Optional[str] = None):
    """
    Set log level.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        module: Optional module name (None = root logger)
    """
    level_int = getattr(logging, level.upper())

    if module:
        logging.getLogger(f'{ROOT_LOGGER_NAME}.{module}').setLevel(level_int)
    else:
        logging.getLogger(ROOT_LOGGER_NAME).setLevel(level_int)
