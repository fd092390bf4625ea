"""Query helpers - run SQL against a borrowed pool connection.

Every helper borrows exactly one connection, runs its work, maps the rows
and hands the connection back whether the work succeeded or failed.
psycopg2 errors are wrapped once into StoreFault (DuplicateEntry for unique
violations) with the original error chained as the cause.

Usage:
    products = query_all(db_pool, 'SELECT * FROM products ORDER BY id', mapper=Product.from_row)
    product = query_one(db_pool, 'SELECT * FROM products WHERE id = %s', (42,), Product.from_row)
    count = execute(db_pool, 'DELETE FROM products WHERE id = %s', (42,))

    def _work(conn):
        with get_cursor(conn) as cursor:
            cursor.execute('UPDATE ...')
            cursor.execute('INSERT ...')
            return cursor.rowcount
    run_with_connection(db_pool, _work)
"""
from typing import Any, Callable, Optional, Sequence, TypeVar

import psycopg2
import psycopg2.errors
from psycopg2.extras import RealDictCursor

from stockroom.core.utils.logging_config import get_logger
from stockroom.exceptions import DuplicateEntry, StoreFault

logger = get_logger('stockroom.queries')

T = TypeVar('T')


def get_cursor(conn):
    """Get cursor with dict row factory."""
    return conn.cursor(cursor_factory=RealDictCursor)


def _first_line(error: Exception) -> str:
    text = str(error).strip()
    return text.splitlines()[0] if text else type(error).__name__


def run_with_connection(db_pool, work: Callable[[Any], T]) -> T:
    """Borrow a connection, run ``work(conn)`` and always release it."""
    conn = db_pool.acquire()
    try:
        return work(conn)
    except psycopg2.errors.UniqueViolation as e:
        raise DuplicateEntry(f'Duplicate entry: {_first_line(e)}') from e
    except psycopg2.Error as e:
        logger.error(f'Database operation failed: {_first_line(e)}')
        raise StoreFault(f'Database operation failed: {_first_line(e)}') from e
    finally:
        db_pool.release(conn)


def query_one(db_pool, sql: str, params: Optional[Sequence] = None,
              mapper: Callable[[Any], T] = dict) -> Optional[T]:
    """Execute a SELECT and return the first row mapped, or None."""
    def _work(conn):
        with get_cursor(conn) as cursor:
            cursor.execute(sql, params or ())
            row = cursor.fetchone()
        return mapper(row) if row is not None else None
    return run_with_connection(db_pool, _work)


def query_all(db_pool, sql: str, params: Optional[Sequence] = None,
              mapper: Callable[[Any], T] = dict) -> list:
    """Execute a SELECT and return all rows mapped, in store order."""
    def _work(conn):
        with get_cursor(conn) as cursor:
            cursor.execute(sql, params or ())
            rows = cursor.fetchall()
        return [mapper(row) for row in rows]
    return run_with_connection(db_pool, _work)


def execute(db_pool, sql: str, params: Optional[Sequence] = None,
            returning: bool = False, mapper: Callable[[Any], T] = dict):
    """Execute an INSERT/UPDATE/DELETE in autocommit mode.

    Args:
        sql: SQL statement
        params: Query parameters
        returning: If True, fetchone() and return it mapped. If False, return rowcount.
        mapper: Row mapper used when returning=True

    Returns:
        mapped row (or None) if returning=True, else int (rowcount)
    """
    def _work(conn):
        with get_cursor(conn) as cursor:
            cursor.execute(sql, params or ())
            if returning:
                row = cursor.fetchone()
                return mapper(row) if row is not None else None
            return cursor.rowcount
    return run_with_connection(db_pool, _work)


def like_pattern(value: str) -> str:
    """Build a substring LIKE pattern with wildcards in ``value`` escaped."""
    escaped = value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f'%{escaped}%'
