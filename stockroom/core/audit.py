"""Audit trail for mutating actions.

Entries are appended to the audit file as
``[YYYY-MM-DD HH:MM:SS] OPERATION - User: actor - details`` and echoed
through the ``stockroom.audit`` logger.
"""
import logging
import threading
from typing import Optional

from stockroom.core.utils.logging_config import get_logger

AUDIT_LOGGER = 'stockroom.audit'
ENTRY_FORMAT = '[%(asctime)s] %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

SYSTEM_USER = 'system'


class AuditLog:
    """Append-only audit sink. Safe to share across worker threads."""

    def __init__(self, log_file: Optional[str] = 'system.log'):
        self.log_file = log_file
        self._logger = get_logger(AUDIT_LOGGER)
        self._logger.setLevel(logging.INFO)
        self._handler = None
        self._lock = threading.Lock()
        if log_file:
            self._handler = logging.FileHandler(log_file, encoding='utf-8')
            self._handler.setFormatter(logging.Formatter(ENTRY_FORMAT, DATE_FORMAT))
            self._logger.addHandler(self._handler)

    def log(self, operation: str, details: str, user: Optional[str] = None):
        """Append one audit entry."""
        actor = user or SYSTEM_USER
        record_level = logging.ERROR if operation == 'ERROR' else logging.INFO
        self._logger.log(
            record_level,
            f'{operation} - User: {actor} - {details}',
            extra={'extra': {'operation': operation, 'user': actor}},
        )

    def close(self):
        """Detach and close the file handler. Idempotent."""
        with self._lock:
            if self._handler is None:
                return
            self._logger.removeHandler(self._handler)
            self._handler.close()
            self._handler = None
