"""Shared fixtures: in-memory DAOs and a recording audit sink."""
import sys
import os
import threading
from datetime import datetime

import pytest
from werkzeug.security import check_password_hash, generate_password_hash

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from stockroom.auth.services.auth_service import AuthService
from stockroom.config import DatabaseConfig
from stockroom.inventory.services.inventory_service import InventoryService
from stockroom.models import ADMIN_ROLE, Employee, Product


class RecordingAudit:
    """Collects audit entries instead of writing a file."""

    def __init__(self):
        self.entries = []
        self._lock = threading.Lock()

    def log(self, operation, details, user=None):
        with self._lock:
            self.entries.append((operation, details, user or 'system'))

    def close(self):
        pass

    def operations(self):
        return [op for op, _, _ in self.entries]


class InMemoryProductDAO:
    def __init__(self):
        self._rows = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def get_all(self):
        with self._lock:
            return [self._copy(p) for _, p in sorted(self._rows.items())]

    def get_by_id(self, product_id):
        with self._lock:
            p = self._rows.get(product_id)
            return self._copy(p) if p else None

    def get_by_category(self, category):
        return [p for p in self.get_all() if category.lower() in p.category.lower()]

    def get_by_name(self, name):
        return [p for p in self.get_all() if name.lower() in p.name.lower()]

    def get_by_quantity(self, quantity):
        return [p for p in self.get_all() if p.quantity == quantity]

    def add(self, product):
        with self._lock:
            stored = Product(product.name, product.category, product.quantity, product.price,
                             id=self._next_id, created_at=datetime(2024, 1, 1, 9, 0))
            self._rows[stored.id] = stored
            self._next_id += 1
            return self._copy(stored)

    def update(self, product):
        with self._lock:
            current = self._rows.get(product.id)
            if current is None:
                return False
            self._rows[product.id] = Product(product.name, product.category, product.quantity,
                                             product.price, id=product.id, created_at=current.created_at)
            return True

    def delete(self, product_id):
        with self._lock:
            return self._rows.pop(product_id, None) is not None

    @staticmethod
    def _copy(p):
        return Product(p.name, p.category, p.quantity, p.price, id=p.id, created_at=p.created_at)


class InMemoryEmployeeDAO:
    def __init__(self):
        self._rows = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def seed(self, username, password, role='staff', fullname=''):
        return self.add(Employee(username, fullname or username.title(), password, role))

    def get_all(self):
        with self._lock:
            return [self._copy(e) for _, e in sorted(self._rows.items())]

    def get_by_username(self, username):
        with self._lock:
            for e in self._rows.values():
                if e.username == username:
                    return self._copy(e)
        return None

    def add(self, employee):
        with self._lock:
            stored = Employee(employee.username, employee.fullname,
                              generate_password_hash(employee.password), employee.role,
                              id=self._next_id, created_at=datetime(2024, 1, 1, 9, 0))
            self._rows[stored.id] = stored
            self._next_id += 1
            return self._copy(stored)

    def update(self, employee, update_password):
        with self._lock:
            current = self._rows.get(employee.id)
            if current is None:
                return False
            password = generate_password_hash(employee.password) if update_password else current.password
            self._rows[employee.id] = Employee(employee.username, employee.fullname, password,
                                               employee.role, id=employee.id, created_at=current.created_at)
            return True

    def delete(self, employee_id):
        with self._lock:
            return self._rows.pop(employee_id, None) is not None

    def authenticate(self, username, password):
        employee = self.get_by_username(username)
        if employee is None:
            return None
        employee.authenticated = bool(employee.password) and check_password_hash(employee.password, password)
        employee.admin = employee.authenticated and employee.has_admin_role
        return employee

    def is_admin(self, username):
        employee = self.get_by_username(username)
        return employee is not None and employee.role.lower() == ADMIN_ROLE

    @staticmethod
    def _copy(e):
        return Employee(e.username, e.fullname, e.password, e.role, id=e.id, created_at=e.created_at)


@pytest.fixture
def audit():
    return RecordingAudit()


@pytest.fixture
def product_dao():
    return InMemoryProductDAO()


@pytest.fixture
def employee_dao():
    dao = InMemoryEmployeeDAO()
    dao.seed('admin', 'admin-pass', role='admin', fullname='System Administrator')
    dao.seed('alice', 'secret', role='staff', fullname='Alice Smith')
    return dao


@pytest.fixture
def inventory_service(product_dao, employee_dao, audit):
    return InventoryService(product_dao, employee_dao, audit)


@pytest.fixture
def auth_service(employee_dao, audit):
    return AuthService(employee_dao, audit)


@pytest.fixture
def config():
    return DatabaseConfig(max_pool_size=2, min_idle=0, acquire_timeout_ms=200,
                          host='127.0.0.1', port=0, audit_log_file='')
