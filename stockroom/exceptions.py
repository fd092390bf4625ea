"""Stockroom exceptions.

Pool and store faults are raised by the data-access layer. Remote faults
are the only errors the service façade lets cross the network boundary.
Absence (no matching record) and failed credentials are ordinary results,
not exceptions.
"""


class StockroomError(Exception):
    """Base exception for all Stockroom errors."""


# --- Connection pool ---

class PoolExhausted(StockroomError):
    """No connection became available within the acquire timeout.

    Callers may retry.
    """

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"No database connection available within {timeout:g}s")


class PoolClosed(StockroomError):
    """The pool has been closed and no longer hands out connections."""

    def __init__(self, message='Connection pool is closed'):
        super().__init__(message)


# --- Data store ---

class StoreFault(StockroomError):
    """A query or update against the data store failed."""


class DataIntegrityError(StoreFault):
    """A result row is missing a column the record mapping requires."""

    def __init__(self, table: str, missing):
        self.table = table
        self.missing = tuple(missing)
        super().__init__(f"Row from '{table}' is missing required column(s): {', '.join(self.missing)}")


class DuplicateEntry(StoreFault):
    """A unique constraint rejected the write."""


# --- Lifecycle ---

class StartupFault(StockroomError):
    """The server could not reach the LISTENING state."""


class NotBound(StockroomError):
    """No service is registered under the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Service '{name}' is not bound")


class AlreadyBound(StockroomError):
    """A service is already registered under the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Service '{name}' is already bound")


# --- Remote boundary ---

class RemoteFault(StockroomError):
    """Error signal crossing the network boundary.

    Carries a human-readable message and the cause text. Callers must treat
    any RemoteFault as "operation not applied".
    """

    status_code = 500

    def __init__(self, message: str, cause=None):
        super().__init__(message)
        self.message = message
        if cause is None or isinstance(cause, str):
            self.cause = cause
        else:
            self.cause = str(cause) or type(cause).__name__

    def to_dict(self) -> dict:
        return {
            'type': type(self).__name__,
            'message': self.message,
            'cause': self.cause,
        }

    def __str__(self):
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message


class ValidationFault(RemoteFault):
    """The call carried invalid arguments."""

    status_code = 400


class PermissionDenied(RemoteFault):
    """The acting user is not allowed to perform the operation."""

    status_code = 403


class ServiceUnavailable(RemoteFault):
    """The requested service or method is not bound on the listener."""

    status_code = 404


REMOTE_FAULTS = {
    cls.__name__: cls
    for cls in (RemoteFault, ValidationFault, PermissionDenied, ServiceUnavailable)
}
