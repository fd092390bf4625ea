"""Stockroom Core Database Module.

Provides the bounded connection pool shared by every DAO. One pool is built
per process by the server lifecycle and passed to the DAOs; it is torn down
exactly once during shutdown.
"""
import time
import threading
from contextlib import contextmanager

import psycopg2
from psycopg2 import pool

from stockroom.core.utils.logging_config import get_logger
from stockroom.exceptions import PoolClosed, PoolExhausted, StoreFault

logger = get_logger('stockroom.pool')

# Attempts at handing out a live connection before giving up
MAX_CHECKOUT_ATTEMPTS = 3

_DEAD_CONNECTION_ERRORS = (psycopg2.OperationalError, psycopg2.InterfaceError, psycopg2.DatabaseError)


class ConnectionPool:
    """Bounded, thread-safe pool of PostgreSQL connections.

    Wraps psycopg2's ThreadedConnectionPool with what it lacks: a bounded
    wait when every connection is checked out, liveness probing on the way
    in and out, idle expiry, and a close() that refuses further acquires.

    Usage:
        db_pool = ConnectionPool(config)
        with db_pool.connection() as conn:
            ...
        db_pool.close()
    """

    def __init__(self, config):
        self.config = config
        self._pool = None
        self._cond = threading.Condition()
        self._in_use = 0
        self._closed = False
        # id(conn) -> monotonic time it went back to the idle set
        self._released_at = {}

    # ---------- lifecycle ----------

    def open(self) -> 'ConnectionPool':
        """Create the underlying pool eagerly (normally lazy on first acquire)."""
        self._get_pool()
        return self

    def _get_pool(self):
        """Get or create the psycopg2 pool (lazy initialization)."""
        with self._cond:
            if self._closed:
                raise PoolClosed()
            if self._pool is None:
                try:
                    self._pool = pool.ThreadedConnectionPool(
                        minconn=self.config.min_idle,
                        maxconn=self.config.max_pool_size,
                        keepalives=1,           # Enable keepalives
                        keepalives_idle=30,     # Seconds before sending keepalive
                        keepalives_interval=10, # Seconds between keepalives
                        keepalives_count=5,     # Failed keepalives before disconnect
                        **self.config.connection_kwargs()
                    )
                except psycopg2.Error as e:
                    raise StoreFault(f'Failed to initialize connection pool: {e}') from e
                logger.info(
                    f'Connection pool initialized (min_idle={self.config.min_idle}, '
                    f'max_size={self.config.max_pool_size})'
                )
            return self._pool

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_use(self) -> int:
        """Number of connections currently checked out."""
        with self._cond:
            return self._in_use

    def close(self):
        """Close every connection and reject further acquires. Idempotent."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            underlying, self._pool = self._pool, None
            self._released_at.clear()
            # Wake waiters so they fail fast instead of sitting out their timeout
            self._cond.notify_all()
        if underlying is not None:
            underlying.closeall()
        logger.info('Connection pool closed')

    # ---------- checkout ----------

    def acquire(self):
        """Borrow a live autocommit connection.

        Blocks up to the configured acquire timeout when every connection is
        checked out.

        Raises:
            PoolExhausted: no connection became available in time.
            PoolClosed: the pool has been closed.
            StoreFault: no live connection could be established.
        """
        timeout = self.config.acquire_timeout
        deadline = time.monotonic() + timeout
        with self._cond:
            while True:
                if self._closed:
                    raise PoolClosed()
                if self._in_use < self.config.max_pool_size:
                    self._in_use += 1
                    break
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.warning(f'Connection pool exhausted after waiting {timeout:g}s')
                    raise PoolExhausted(timeout)
                self._cond.wait(remaining)

        try:
            return self._checkout()
        except BaseException:
            self._free_slot()
            raise

    def _checkout(self):
        """Get a validated connection from the underlying pool.

        Stale connections (idle past the timeout, or failing the probe) are
        discarded and a fresh one is obtained. Retries up to
        MAX_CHECKOUT_ATTEMPTS times.
        """
        last_error = None
        for _ in range(MAX_CHECKOUT_ATTEMPTS):
            underlying = self._get_pool()
            try:
                conn = underlying.getconn()
            except pool.PoolError as e:
                if self._closed:
                    raise PoolClosed() from e
                raise StoreFault(f'Connection pool error: {e}') from e
            except psycopg2.Error as e:
                last_error = e
                continue

            released_at = self._released_at.pop(id(conn), None)
            if released_at is not None and time.monotonic() - released_at > self.config.idle_timeout:
                logger.debug('Discarding connection idle past timeout')
                self._discard(underlying, conn)
                continue

            try:
                # Each DAO call is its own unit of work
                conn.autocommit = True
                self._probe(conn)
                return conn
            except _DEAD_CONNECTION_ERRORS as e:
                last_error = e
                logger.warning(f'Discarding dead connection: {e}')
                self._discard(underlying, conn)

        raise StoreFault(
            f'Failed to get valid connection after {MAX_CHECKOUT_ATTEMPTS} attempts: {last_error}'
        )

    def release(self, conn):
        """Return a connection to the idle set.

        Connections failing the liveness probe are closed and discarded
        rather than returned to service. Always frees the caller's slot.
        """
        if conn is None:
            return
        try:
            underlying = self._pool
            if self._closed or underlying is None:
                self._close_quietly(conn)
                return
            try:
                self._probe(conn)
            except _DEAD_CONNECTION_ERRORS as e:
                logger.warning(f'Connection failed liveness probe on release, discarding: {e}')
                self._discard(underlying, conn)
                return
            self._released_at[id(conn)] = time.monotonic()
            try:
                underlying.putconn(conn)
            except pool.PoolError:
                # Pool closed underneath us
                self._released_at.pop(id(conn), None)
                self._close_quietly(conn)
                return
            if conn.closed:
                # putconn closes connections beyond minconn instead of keeping them idle
                self._released_at.pop(id(conn), None)
        finally:
            self._free_slot()

    @contextmanager
    def connection(self):
        """Context manager for a borrowed connection - auto-releases to pool."""
        conn = self.acquire()
        try:
            yield conn
        finally:
            self.release(conn)

    def ping(self) -> bool:
        """Ping the database. Returns True if a probe query succeeds."""
        try:
            with self.connection() as conn:
                self._probe(conn)
            return True
        except Exception as e:
            logger.debug(f'Database ping failed: {e}')
            return False

    # ---------- helpers ----------

    def _probe(self, conn):
        with conn.cursor() as cur:
            cur.execute(self.config.probe_query)

    def _free_slot(self):
        with self._cond:
            self._in_use -= 1
            self._cond.notify()

    def _discard(self, underlying, conn):
        try:
            underlying.putconn(conn, close=True)
        except pool.PoolError:
            self._close_quietly(conn)

    @staticmethod
    def _close_quietly(conn):
        try:
            conn.close()
        except psycopg2.Error as e:
            logger.debug(f'Ignoring error while closing connection: {e}')
