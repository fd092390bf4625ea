"""Stockroom domain records.

Product and Employee are plain dataclasses shared by the DAOs, the service
façade and the remote client. ``from_row`` maps a database row and fails on
missing columns; ``to_dict`` / ``from_dict`` are the wire representation.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple

from stockroom.exceptions import DataIntegrityError

ADMIN_ROLE = 'admin'


def to_decimal(value) -> Decimal:
    """Convert a wire or user value to Decimal without going through float."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f'Invalid price: {value!r}')
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f'Invalid price: {value!r}') from e


def _parse_timestamp(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _require_columns(row: Mapping[str, Any], table: str, columns: Tuple[str, ...]):
    missing = [c for c in columns if c not in row]
    if missing:
        raise DataIntegrityError(table, missing)


@dataclass
class Product:
    """A catalog entry. ``id`` is 0 until the store assigns one."""

    name: str
    category: str = ''
    quantity: int = 0
    price: Decimal = Decimal('0.00')
    id: int = 0
    created_at: Optional[datetime] = None

    COLUMNS: ClassVar[Tuple[str, ...]] = ('id', 'name', 'category', 'quantity', 'price', 'created_at')

    def __post_init__(self):
        self.price = to_decimal(self.price)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'Product':
        _require_columns(row, 'products', cls.COLUMNS)
        return cls(
            id=row['id'],
            name=row['name'],
            category=row['category'],
            quantity=row['quantity'],
            price=row['price'],
            created_at=row['created_at'],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'quantity': self.quantity,
            'price': str(self.price),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Product':
        if 'name' not in data:
            raise KeyError('name')
        return cls(
            id=int(data.get('id') or 0),
            name=data['name'],
            category=data.get('category') or '',
            quantity=int(data.get('quantity', 0)),
            price=to_decimal(data.get('price', '0')),
            created_at=_parse_timestamp(data.get('created_at')),
        )


@dataclass
class Employee:
    """An employee account.

    ``password`` holds the plaintext only on its way into ``add``/``update``;
    records read from the store carry the salted hash. ``authenticated`` and
    ``admin`` are session flags set by authentication and never persisted.
    """

    username: str
    fullname: str = ''
    password: Optional[str] = field(default=None, repr=False)
    role: str = 'staff'
    id: int = 0
    created_at: Optional[datetime] = None
    authenticated: bool = field(default=False, compare=False)
    admin: bool = field(default=False, compare=False)

    COLUMNS: ClassVar[Tuple[str, ...]] = ('id', 'username', 'fullname', 'password_hash', 'role', 'created_at')

    @property
    def has_admin_role(self) -> bool:
        return (self.role or '').lower() == ADMIN_ROLE

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'Employee':
        _require_columns(row, 'employees', cls.COLUMNS)
        return cls(
            id=row['id'],
            username=row['username'],
            fullname=row['fullname'],
            password=row['password_hash'],
            role=row['role'],
            created_at=row['created_at'],
        )

    @classmethod
    def unauthenticated(cls, username: str) -> 'Employee':
        """The result returned for any failed credential check."""
        return cls(username=username, fullname='', role='')

    def to_dict(self, include_password: bool = False) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'username': self.username,
            'fullname': self.fullname,
            'role': self.role,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'authenticated': self.authenticated,
            'admin': self.admin,
        }
        if include_password:
            data['password'] = self.password
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Employee':
        if 'username' not in data:
            raise KeyError('username')
        return cls(
            id=int(data.get('id') or 0),
            username=data['username'],
            fullname=data.get('fullname') or '',
            password=data.get('password'),
            role=data.get('role') or '',
            created_at=_parse_timestamp(data.get('created_at')),
            authenticated=bool(data.get('authenticated', False)),
            admin=bool(data.get('admin', False)),
        )
