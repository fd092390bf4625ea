"""Employee DAO - Data access layer for employee accounts.

This module handles all database operations related to employees, including
credential hashing and authentication. Passwords are stored only as salted
one-way hashes produced by werkzeug.security; the salt and cost parameters
are embedded in the stored hash.
"""
from functools import lru_cache
from typing import List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from stockroom.core.queries import execute, query_all, query_one
from stockroom.models import ADMIN_ROLE, Employee

_COLUMNS = 'id, username, fullname, password_hash, role, created_at'


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    # Verified against for unknown usernames so both outcomes cost the same
    return generate_password_hash('stockroom-unknown-user')


class EmployeeDAO:
    """DAO for employee accounts."""

    def __init__(self, db_pool):
        self.db_pool = db_pool

    def get_all(self) -> List[Employee]:
        """Get all employees in insertion order."""
        return query_all(self.db_pool, f'''
            SELECT {_COLUMNS} FROM employees
            ORDER BY id
        ''', mapper=Employee.from_row)

    def get_by_id(self, employee_id: int) -> Optional[Employee]:
        return query_one(self.db_pool, f'''
            SELECT {_COLUMNS} FROM employees
            WHERE id = %s
        ''', (employee_id,), Employee.from_row)

    def get_by_username(self, username: str) -> Optional[Employee]:
        return query_one(self.db_pool, f'''
            SELECT {_COLUMNS} FROM employees
            WHERE username = %s
        ''', (username,), Employee.from_row)

    def add(self, employee: Employee) -> Employee:
        """Insert an employee, hashing the password first.

        Returns the stored record (id, created_at and password hash populated).
        """
        password_hash = generate_password_hash(employee.password)
        return execute(self.db_pool, f'''
            INSERT INTO employees (username, fullname, password_hash, role)
            VALUES (%s, %s, %s, %s)
            RETURNING {_COLUMNS}
        ''', (employee.username, employee.fullname, password_hash, employee.role),
            returning=True, mapper=Employee.from_row)

    def update(self, employee: Employee, update_password: bool) -> bool:
        """Update an employee. The hash is recomputed only when update_password is set."""
        if update_password:
            password_hash = generate_password_hash(employee.password)
            return execute(self.db_pool, '''
                UPDATE employees
                SET username = %s, fullname = %s, password_hash = %s, role = %s
                WHERE id = %s
            ''', (employee.username, employee.fullname, password_hash, employee.role, employee.id)) > 0
        return execute(self.db_pool, '''
            UPDATE employees
            SET username = %s, fullname = %s, role = %s
            WHERE id = %s
        ''', (employee.username, employee.fullname, employee.role, employee.id)) > 0

    def delete(self, employee_id: int) -> bool:
        """Delete an employee. Returns False when no such employee exists."""
        return execute(self.db_pool, 'DELETE FROM employees WHERE id = %s', (employee_id,)) > 0

    # --- Authentication Methods ---

    def authenticate(self, username: str, password: str) -> Optional[Employee]:
        """Check credentials.

        Returns None for an unknown username. Otherwise returns the employee
        with ``authenticated`` set to the outcome of the constant-time hash
        check, and ``admin`` set when authenticated with the admin role.
        """
        employee = self.get_by_username(username)
        if employee is None:
            check_password_hash(_dummy_hash(), password)
            return None

        if employee.password:
            employee.authenticated = check_password_hash(employee.password, password)
        else:
            employee.authenticated = False
        employee.admin = employee.authenticated and employee.has_admin_role
        return employee

    def is_admin(self, username: str) -> bool:
        """Server-side role check for privileged calls."""
        if not username:
            return False
        row = query_one(self.db_pool, '''
            SELECT role FROM employees
            WHERE username = %s
        ''', (username,))
        return bool(row) and (row['role'] or '').lower() == ADMIN_ROLE

    def set_default_passwords(self, default_password: str) -> int:
        """Set a password for every employee without one. Returns count updated."""
        password_hash = generate_password_hash(default_password)
        return execute(self.db_pool, '''
            UPDATE employees SET password_hash = %s
            WHERE password_hash IS NULL OR password_hash = ''
        ''', (password_hash,))
