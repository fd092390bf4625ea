"""Product DAO - Data access layer for the product catalog.

Every method borrows one pooled connection for the duration of a single
autocommit statement. Parameters always go through binding.
"""
from typing import List, Optional

from stockroom.core.queries import execute, like_pattern, query_all, query_one
from stockroom.models import Product

_COLUMNS = 'id, name, category, quantity, price, created_at'


class ProductDAO:
    """DAO for products."""

    def __init__(self, db_pool):
        self.db_pool = db_pool

    def get_all(self) -> List[Product]:
        """Get all products in insertion order."""
        return query_all(self.db_pool, f'''
            SELECT {_COLUMNS} FROM products
            ORDER BY id
        ''', mapper=Product.from_row)

    def get_by_id(self, product_id: int) -> Optional[Product]:
        return query_one(self.db_pool, f'''
            SELECT {_COLUMNS} FROM products
            WHERE id = %s
        ''', (product_id,), Product.from_row)

    def get_by_category(self, category: str) -> List[Product]:
        """Products whose category contains ``category`` (case-insensitive)."""
        return query_all(self.db_pool, f'''
            SELECT {_COLUMNS} FROM products
            WHERE category ILIKE %s
            ORDER BY id
        ''', (like_pattern(category),), Product.from_row)

    def get_by_name(self, name: str) -> List[Product]:
        """Products whose name contains ``name`` (case-insensitive)."""
        return query_all(self.db_pool, f'''
            SELECT {_COLUMNS} FROM products
            WHERE name ILIKE %s
            ORDER BY id
        ''', (like_pattern(name),), Product.from_row)

    def get_by_quantity(self, quantity: int) -> List[Product]:
        return query_all(self.db_pool, f'''
            SELECT {_COLUMNS} FROM products
            WHERE quantity = %s
            ORDER BY id
        ''', (quantity,), Product.from_row)

    def add(self, product: Product) -> Product:
        """Insert a product. Returns it with the store-assigned id and created_at."""
        return execute(self.db_pool, f'''
            INSERT INTO products (name, category, quantity, price)
            VALUES (%s, %s, %s, %s)
            RETURNING {_COLUMNS}
        ''', (product.name, product.category, product.quantity, product.price),
            returning=True, mapper=Product.from_row)

    def update(self, product: Product) -> bool:
        """Replace every field except id and created_at. Returns True if a row changed."""
        return execute(self.db_pool, '''
            UPDATE products
            SET name = %s, category = %s, quantity = %s, price = %s
            WHERE id = %s
        ''', (product.name, product.category, product.quantity, product.price, product.id)) > 0

    def delete(self, product_id: int) -> bool:
        """Delete a product. Returns False when no such product exists."""
        return execute(self.db_pool, 'DELETE FROM products WHERE id = %s', (product_id,)) > 0
