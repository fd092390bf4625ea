"""Unit tests for EmployeeDAO: CRUD, password hashing and authentication."""
from datetime import datetime
from unittest.mock import MagicMock, patch

import psycopg2.errors
import pytest
from werkzeug.security import check_password_hash, generate_password_hash

from stockroom.auth.repositories.employee_dao import EmployeeDAO
from stockroom.exceptions import DuplicateEntry
from stockroom.models import Employee

_Q = 'stockroom.core.queries'


def _mock_db(mock_get_cursor):
    db_pool, conn, cursor = MagicMock(), MagicMock(), MagicMock()
    db_pool.acquire.return_value = conn
    mock_get_cursor.return_value.__enter__.return_value = cursor
    return db_pool, conn, cursor


def _row(**overrides):
    row = {
        'id': 2,
        'username': 'alice',
        'fullname': 'Alice Smith',
        'password_hash': generate_password_hash('secret'),
        'role': 'staff',
        'created_at': datetime(2024, 3, 1, 10, 30),
    }
    row.update(overrides)
    return row


class TestEmployeeCrud:

    @patch(f'{_Q}.get_cursor')
    def test_get_all(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchall.return_value = [_row(id=1, username='admin', role='admin'), _row()]

        result = EmployeeDAO(db_pool).get_all()

        assert [e.username for e in result] == ['admin', 'alice']
        assert 'ORDER BY id' in cursor.execute.call_args[0][0]

    @patch(f'{_Q}.get_cursor')
    def test_get_by_username_not_found(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchone.return_value = None

        assert EmployeeDAO(db_pool).get_by_username('nobody') is None

    @patch(f'{_Q}.get_cursor')
    def test_add_stores_hash_not_plaintext(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchone.return_value = _row(id=5, username='bob')

        created = EmployeeDAO(db_pool).add(Employee('bob', 'Bob', 'hunter2', 'staff'))

        params = cursor.execute.call_args[0][1]
        assert params[0] == 'bob'
        assert params[2] != 'hunter2'
        assert check_password_hash(params[2], 'hunter2')
        assert created.id == 5

    @patch(f'{_Q}.get_cursor')
    def test_add_duplicate_username(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.execute.side_effect = psycopg2.errors.UniqueViolation('duplicate key value')

        with pytest.raises(DuplicateEntry):
            EmployeeDAO(db_pool).add(Employee('alice', 'Alice', 'secret'))
        db_pool.release.assert_called_once_with(conn)

    @patch(f'{_Q}.get_cursor')
    def test_update_without_password_keeps_hash(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.rowcount = 1

        result = EmployeeDAO(db_pool).update(Employee('alice', 'Alice S.', 'ignored', 'staff', id=2), False)

        sql, params = cursor.execute.call_args[0]
        assert result is True
        assert 'password_hash' not in sql
        assert params == ('alice', 'Alice S.', 'staff', 2)

    @patch(f'{_Q}.get_cursor')
    def test_update_with_password_rehashes(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.rowcount = 1

        EmployeeDAO(db_pool).update(Employee('alice', 'Alice', 'new-pass', 'staff', id=2), True)

        params = cursor.execute.call_args[0][1]
        assert check_password_hash(params[2], 'new-pass')

    @patch(f'{_Q}.get_cursor')
    def test_update_missing_returns_false(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.rowcount = 0

        assert EmployeeDAO(db_pool).update(Employee('ghost', id=404), False) is False

    @patch(f'{_Q}.get_cursor')
    def test_delete_missing_returns_false(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.rowcount = 0

        assert EmployeeDAO(db_pool).delete(404) is False


class TestEmployeeAuthenticate:

    @patch(f'{_Q}.get_cursor')
    def test_correct_password(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchone.return_value = _row()

        employee = EmployeeDAO(db_pool).authenticate('alice', 'secret')

        assert employee.authenticated is True
        assert employee.admin is False

    @patch(f'{_Q}.get_cursor')
    def test_admin_flag_set_for_admin_role(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchone.return_value = _row(username='admin', role='ADMIN',
                                            password_hash=generate_password_hash('admin-pass'))

        employee = EmployeeDAO(db_pool).authenticate('admin', 'admin-pass')

        assert employee.authenticated is True
        assert employee.admin is True

    @patch(f'{_Q}.get_cursor')
    def test_wrong_password(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchone.return_value = _row(role='admin')

        employee = EmployeeDAO(db_pool).authenticate('alice', 'wrong')

        assert employee.authenticated is False
        assert employee.admin is False

    @patch(f'{_Q}.get_cursor')
    def test_unknown_user(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchone.return_value = None

        assert EmployeeDAO(db_pool).authenticate('nobody', 'secret') is None

    @patch(f'{_Q}.get_cursor')
    def test_account_without_password_never_authenticates(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchone.return_value = _row(password_hash=None)

        assert EmployeeDAO(db_pool).authenticate('alice', '').authenticated is False


class TestEmployeeRoles:

    @patch(f'{_Q}.get_cursor')
    def test_is_admin(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchone.return_value = {'role': 'admin'}

        assert EmployeeDAO(db_pool).is_admin('admin') is True

    @patch(f'{_Q}.get_cursor')
    def test_is_admin_staff(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchone.return_value = {'role': 'staff'}

        assert EmployeeDAO(db_pool).is_admin('alice') is False

    @patch(f'{_Q}.get_cursor')
    def test_is_admin_unknown_user(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.fetchone.return_value = None

        assert EmployeeDAO(db_pool).is_admin('nobody') is False

    def test_is_admin_empty_username_skips_query(self):
        db_pool = MagicMock()
        assert EmployeeDAO(db_pool).is_admin('') is False
        db_pool.acquire.assert_not_called()

    @patch(f'{_Q}.get_cursor')
    def test_set_default_passwords(self, mock_get_cursor):
        db_pool, conn, cursor = _mock_db(mock_get_cursor)
        cursor.rowcount = 2

        assert EmployeeDAO(db_pool).set_default_passwords('changeme123') == 2
        sql, params = cursor.execute.call_args[0]
        assert 'password_hash IS NULL' in sql
        assert check_password_hash(params[0], 'changeme123')
