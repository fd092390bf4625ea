"""Stockroom server - startup, service binding and graceful shutdown.

    STOPPED -> INITIALIZING -> LISTENING -> SHUTTING_DOWN -> STOPPED

Startup loads the configuration, applies the schema/seed scripts when
enabled, binds InventoryService and AuthService on the listener and serves
one worker thread per inbound call. SIGTERM/SIGINT unbind both services,
stop the listener and drain the pool; every step is attempted even if an
earlier one fails.
"""
import argparse
import errno
import os
import signal
import socket
import sys
import threading
from enum import Enum
from typing import Optional

from werkzeug.serving import make_server

from stockroom.auth.repositories.employee_dao import EmployeeDAO
from stockroom.auth.services.auth_service import AuthService
from stockroom.config import DatabaseConfig
from stockroom.core.audit import SYSTEM_USER, AuditLog
from stockroom.core.database import ConnectionPool
from stockroom.core.initializer import DatabaseInitializer
from stockroom.core.utils.logging_config import get_logger, setup_logging
from stockroom.exceptions import StartupFault
from stockroom.inventory.repositories.product_dao import ProductDAO
from stockroom.inventory.services.inventory_service import InventoryService
from stockroom.rpc.app import create_app
from stockroom.rpc.registry import AUTH_SERVICE, INVENTORY_SERVICE, ServiceRegistry

logger = get_logger('stockroom.server')

BOUND_SERVICES = (INVENTORY_SERVICE, AUTH_SERVICE)


class ServerState(Enum):
    STOPPED = 'stopped'
    INITIALIZING = 'initializing'
    LISTENING = 'listening'
    SHUTTING_DOWN = 'shutting_down'


def ensure_port_free(host: str, port: int):
    """Raise StartupFault if the listening port is already taken."""
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        # Same option the WSGI server sets, so TIME_WAIT sockets don't count
        probe.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        probe.bind((host, port))
    except OSError as e:
        if e.errno == errno.EADDRINUSE:
            raise StartupFault(f'Port already in use: {port}') from e
        raise StartupFault(f'Cannot listen on {host}:{port}: {e}') from e
    finally:
        probe.close()


class Server:
    """Owns the pool, the registry and the listener for one process."""

    def __init__(self, config: DatabaseConfig, audit: Optional[AuditLog] = None):
        self.config = config
        self.audit = audit if audit is not None else AuditLog(config.audit_log_file)
        self.registry = ServiceRegistry()
        self.state = ServerState.STOPPED
        self.db_pool = None
        self._listener = None
        self._serving = threading.Event()
        self._stopped = threading.Event()
        self._stopped.set()
        self._lock = threading.Lock()

    @property
    def port(self) -> Optional[int]:
        """Port actually bound (differs from config when configured as 0)."""
        return self._listener.server_port if self._listener is not None else None

    # ---------- startup ----------

    def start(self):
        """Initialize the store, bind the services and open the listener.

        Raises:
            StartupFault: the server could not reach LISTENING. The pool is
                closed and the state is back to STOPPED.
        """
        with self._lock:
            if self.state is not ServerState.STOPPED:
                raise StartupFault(f'Server cannot start from state {self.state.value}')
            self.state = ServerState.INITIALIZING
            self._stopped.clear()

        logger.info(f'Using configuration from: {self.config.source}')
        try:
            self.db_pool = ConnectionPool(self.config)
            DatabaseInitializer(self.config, self.db_pool, self.audit).initialize()

            product_dao = ProductDAO(self.db_pool)
            employee_dao = EmployeeDAO(self.db_pool)

            self._listener = self._make_listener()
            self.audit.log('SERVER', 'Listener started', SYSTEM_USER)

            self.registry.rebind(INVENTORY_SERVICE, InventoryService(product_dao, employee_dao, self.audit))
            self.registry.rebind(AUTH_SERVICE, AuthService(employee_dao, self.audit))
        except StartupFault as e:
            self._abort_startup(e)
            raise
        except Exception as e:
            self._abort_startup(e)
            raise StartupFault(f'Server failed to start: {e}') from e

        with self._lock:
            self.state = ServerState.LISTENING
        self.audit.log('SERVER', 'Services bound. Server is ready.', SYSTEM_USER)
        logger.info(f'Server is running on port: {self.port}')

    def _make_listener(self):
        if self.config.port:
            ensure_port_free(self.config.host, self.config.port)
        app = create_app(self.registry, health_check=self.db_pool.ping)
        try:
            return make_server(self.config.host, self.config.port, app, threaded=True)
        except OSError as e:
            raise StartupFault(f'Failed to start listener on port {self.config.port}: {e}') from e

    def _abort_startup(self, error: Exception):
        self.audit.log('ERROR', f'Server failed to start: {error}', SYSTEM_USER)
        for name in BOUND_SERVICES:
            if name in self.registry.names():
                self.registry.unbind(name)
        if self._listener is not None:
            self._listener.server_close()
            self._listener = None
        if self.db_pool is not None:
            self.db_pool.close()
        with self._lock:
            self.state = ServerState.STOPPED
        self._stopped.set()

    # ---------- serving ----------

    def serve_forever(self):
        """Serve calls until shutdown() is called from another thread."""
        if self.state is not ServerState.LISTENING:
            raise StartupFault('Server is not listening')
        self._serving.set()
        try:
            self._listener.serve_forever()
        finally:
            self._serving.clear()

    # ---------- shutdown ----------

    def shutdown(self):
        """Unbind services, stop the listener and close the pool.

        Best-effort: each step is attempted even if an earlier one fails.
        Safe to call more than once.
        """
        with self._lock:
            if self.state in (ServerState.STOPPED, ServerState.SHUTTING_DOWN):
                return
            self.state = ServerState.SHUTTING_DOWN

        for name in BOUND_SERVICES:
            try:
                self.registry.unbind(name)
            except Exception as e:
                self.audit.log('ERROR', f'Error unbinding {name}: {e}', SYSTEM_USER)
        self.audit.log('SERVER', 'Services unbound', SYSTEM_USER)

        try:
            if self._listener is not None:
                if self._serving.is_set():
                    self._listener.shutdown()
                self._listener.server_close()
        except Exception as e:
            self.audit.log('ERROR', f'Error stopping listener: {e}', SYSTEM_USER)

        try:
            if self.db_pool is not None:
                self.db_pool.close()
        except Exception as e:
            self.audit.log('ERROR', f'Error closing connection pool: {e}', SYSTEM_USER)

        self.audit.log('SERVER', 'Server shutdown completed', SYSTEM_USER)
        with self._lock:
            self.state = ServerState.STOPPED
        self._stopped.set()

    def wait_until_stopped(self, timeout: Optional[float] = None) -> bool:
        return self._stopped.wait(timeout)

    def install_signal_handlers(self):
        """Trigger shutdown on SIGTERM/SIGINT. Must be called from the main thread."""
        def _handle(signum, frame):
            logger.info(f'Received {signal.Signals(signum).name}, shutting down')
            # shutdown() waits for serve_forever to return, so it can't run on the serving thread
            threading.Thread(target=self.shutdown, name='stockroom-shutdown').start()

        signal.signal(signal.SIGTERM, _handle)
        signal.signal(signal.SIGINT, _handle)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='stockroom', description='Stockroom inventory server')
    parser.add_argument('--config', help='Path to an INI configuration file')
    parser.add_argument('--host', help='Listening address (overrides config)')
    parser.add_argument('--port', type=int, help='Listening port (overrides config)')
    parser.add_argument('--log-level', default=None, help='DEBUG, INFO, WARNING, ERROR')
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(level=args.log_level or os.environ.get('LOG_LEVEL', 'INFO'))

    try:
        config = DatabaseConfig.load(args.config)
        overrides = {k: v for k, v in (('host', args.host), ('port', args.port)) if v is not None}
        if overrides:
            config = config.with_overrides(**overrides)
    except (StartupFault, ValueError) as e:
        logger.error(f'Invalid configuration: {e}')
        return 1

    server = Server(config)
    try:
        server.start()
    except StartupFault as e:
        logger.error(str(e))
        server.audit.close()
        return 1

    server.install_signal_handlers()
    try:
        server.serve_forever()
    finally:
        server.shutdown()
        server.wait_until_stopped()
        server.audit.close()
    return 0


if __name__ == '__main__':
    sys.exit(main())
