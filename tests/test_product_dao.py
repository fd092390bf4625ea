"""Unit tests for ProductDAO.

Tests for inventory.repositories.product_dao:
- get_all, get_by_id, get_by_category, get_by_name, get_by_quantity
- add (RETURNING), update, delete
- row mapping failures and driver errors
"""
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from stockroom.exceptions import DataIntegrityError, StoreFault
from stockroom.inventory.repositories.product_dao import ProductDAO
from stockroom.models import Product

_Q = 'stockroom.core.queries'


def _mock_db(mock_get_cursor):
    db_pool, conn, cursor = MagicMock(), MagicMock(), MagicMock()
    db_pool.acquire.return_value = conn
    mock_get_cursor.return_value.__enter__.return_value = cursor
    return db_pool, conn, cursor


def _row(**overrides):
    row = {
        'id': 1,
        'name': 'Hammer',
        'category': 'Tools',
        'quantity': 40,
        'price': Decimal('12.50'),
        'created_at': datetime(2024, 3, 1, 10, 30),
    }
    row.update(overrides)
    return row


class TestProductReads:

    @patch(f'{_Q}.get_cursor')
    def test_get_all_maps_rows_in_order(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchall.return_value = [_row(id=1), _row(id=2, name='Drill')]

        result = ProductDAO(db_pool).get_all()

        assert [p.id for p in result] == [1, 2]
        assert result[1].name == 'Drill'
        assert result[0].price == Decimal('12.50')
        assert 'ORDER BY id' in cursor.execute.call_args[0][0]
        db_pool.release.assert_called_once_with(conn)

    @patch(f'{_Q}.get_cursor')
    def test_get_all_empty(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchall.return_value = []

        assert ProductDAO(db_pool).get_all() == []

    @patch(f'{_Q}.get_cursor')
    def test_get_by_id_not_found(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchone.return_value = None

        assert ProductDAO(db_pool).get_by_id(99) is None
        assert cursor.execute.call_args[0][1] == (99,)

    @patch(f'{_Q}.get_cursor')
    def test_get_by_category_is_case_insensitive_substring(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchall.return_value = [_row()]

        ProductDAO(db_pool).get_by_category('tool')

        sql, params = cursor.execute.call_args[0]
        assert 'category ILIKE %s' in sql
        assert params == ('%tool%',)

    @patch(f'{_Q}.get_cursor')
    def test_get_by_name_escapes_wildcards(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchall.return_value = []

        ProductDAO(db_pool).get_by_name('100%')

        sql, params = cursor.execute.call_args[0]
        assert 'name ILIKE %s' in sql
        assert params == ('%100\\%%',)

    @patch(f'{_Q}.get_cursor')
    def test_get_by_quantity_exact_match(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchall.return_value = [_row(quantity=0)]

        result = ProductDAO(db_pool).get_by_quantity(0)

        assert result[0].quantity == 0
        sql, params = cursor.execute.call_args[0]
        assert 'quantity = %s' in sql
        assert params == (0,)

    @patch(f'{_Q}.get_cursor')
    def test_row_missing_column_fails(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        row = _row()
        del row['price']
        cursor.fetchall.return_value = [row]

        with pytest.raises(DataIntegrityError) as exc_info:
            ProductDAO(db_pool).get_all()

        assert exc_info.value.missing == ('price',)
        db_pool.release.assert_called_once_with(conn)

    @patch(f'{_Q}.get_cursor')
    def test_driver_error_wrapped(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.execute.side_effect = psycopg2.OperationalError('server closed the connection')

        with pytest.raises(StoreFault):
            ProductDAO(db_pool).get_all()
        db_pool.release.assert_called_once_with(conn)


class TestProductWrites:

    @patch(f'{_Q}.get_cursor')
    def test_add_returns_stored_record(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchone.return_value = _row(id=17, name='Level', quantity=3, price=Decimal('9.99'))

        created = ProductDAO(db_pool).add(Product('Level', 'Tools', 3, Decimal('9.99')))

        assert created.id == 17
        assert created.created_at is not None
        sql, params = cursor.execute.call_args[0]
        assert 'RETURNING' in sql
        assert params == ('Level', 'Tools', 3, Decimal('9.99'))

    @patch(f'{_Q}.get_cursor')
    def test_update_existing(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.rowcount = 1

        result = ProductDAO(db_pool).update(Product('Hammer', 'Tools', 39, Decimal('12.50'), id=1))

        assert result is True
        assert cursor.execute.call_args[0][1] == ('Hammer', 'Tools', 39, Decimal('12.50'), 1)

    @patch(f'{_Q}.get_cursor')
    def test_update_missing_returns_false(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.rowcount = 0

        assert ProductDAO(db_pool).update(Product('Ghost', id=404)) is False

    @patch(f'{_Q}.get_cursor')
    def test_delete(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.rowcount = 1

        assert ProductDAO(db_pool).delete(1) is True
        assert cursor.execute.call_args[0][1] == (1,)

    @patch(f'{_Q}.get_cursor')
    def test_delete_missing_returns_false(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.rowcount = 0

        assert ProductDAO(db_pool).delete(404) is False
