"""
Structured logging configuration for the Stockroom server.

Provides JSON-formatted logging for production environments with a
human-readable fallback for development.
"""

import os
import sys
import json
import logging
from datetime import datetime, timezone
from typing import Optional


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'thread': record.threadName,
        }

        # Audit records carry operation/user fields
        if hasattr(record, 'extra') and record.extra:
            log_entry.update(record.extra)

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, '') if _supports_color() else ''
        reset = self.RESET if color else ''

        timestamp = datetime.now().strftime('%H:%M:%S')
        location = f'{record.name}:{record.lineno}'

        base = f'{color}[{timestamp}] {record.levelname:8}{reset} {location:34} {record.getMessage()}'

        if record.exc_info:
            base = f'{base}\n{self.formatException(record.exc_info)}'

        return base


def _supports_color() -> bool:
    return hasattr(sys.stdout, 'isatty') and sys.stdout.isatty()


def setup_logging(
    level: str = 'INFO',
    json_format: Optional[bool] = None,
    logger_name: str = 'stockroom'
) -> logging.Logger:
    """Configure and return the application logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting. If None, auto-detects from the
            PRODUCTION environment variable.
        logger_name: Name for the logger instance.

    Returns:
        Configured logger instance.
    """
    if json_format is None:
        json_format = os.environ.get('PRODUCTION', '').lower() == 'true'

    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logger.level)
    handler.setFormatter(JSONFormatter() if json_format else DevelopmentFormatter())
    logger.addHandler(handler)

    # Prevent propagation to root logger
    logger.propagate = False

    return logger


def get_logger(name: str = 'stockroom') -> logging.Logger:
    """Get a logger instance (e.g. 'stockroom.pool', 'stockroom.server')."""
    return logging.getLogger(name)
