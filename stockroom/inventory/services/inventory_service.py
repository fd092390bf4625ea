"""Inventory Service - remote façade for product and employee management.

Validates calls, delegates to the DAOs and writes one audit entry per
mutating call. Reads are not audited. Every failure leaves this module as a
RemoteFault; DAO errors are wrapped exactly once with the operation context.
"""
from typing import Callable, List, Optional, TypeVar

from stockroom.core.utils.logging_config import get_logger
from stockroom.exceptions import PermissionDenied, RemoteFault, ValidationFault
from stockroom.models import Employee, Product

logger = get_logger('stockroom.inventory')

T = TypeVar('T')


def validate_product(product: Product):
    if not isinstance(product, Product):
        raise ValidationFault('Invalid product', cause='expected a product record')
    if not product.name or not product.name.strip():
        raise ValidationFault('Invalid product', cause='name must not be empty')
    if product.quantity is None or product.quantity < 0:
        raise ValidationFault('Invalid product', cause='quantity must not be negative')
    if product.price is None or not product.price.is_finite():
        raise ValidationFault('Invalid product', cause='price must be a finite number')
    if product.price < 0:
        raise ValidationFault('Invalid product', cause='price must not be negative')


def validate_employee(employee: Employee, require_password: bool):
    if not isinstance(employee, Employee):
        raise ValidationFault('Invalid employee', cause='expected an employee record')
    if not employee.username or not employee.username.strip():
        raise ValidationFault('Invalid employee', cause='username must not be empty')
    if require_password and not employee.password:
        raise ValidationFault('Invalid employee', cause='password must not be empty')


class InventoryService:
    """Service exposing the inventory remote contract."""

    REMOTE_METHODS = frozenset({
        'get_all_products',
        'get_products_by_category',
        'get_products_by_name',
        'get_products_by_quantity',
        'get_all_employees',
        'add_product',
        'update_product',
        'delete_product',
        'add_employee',
        'update_employee',
        'delete_employee',
    })

    def __init__(self, product_dao, employee_dao, audit):
        self.product_dao = product_dao
        self.employee_dao = employee_dao
        self.audit = audit

    # --- Reads ---

    def get_all_products(self) -> List[Product]:
        return self._read('Error fetching products', self.product_dao.get_all)

    def get_products_by_category(self, category: str) -> List[Product]:
        return self._read('Error fetching products by category',
                          lambda: self.product_dao.get_by_category(category or ''))

    def get_products_by_name(self, name: str) -> List[Product]:
        return self._read('Error fetching products by name',
                          lambda: self.product_dao.get_by_name(name or ''))

    def get_products_by_quantity(self, quantity: int) -> List[Product]:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationFault('Error fetching products by quantity', cause='quantity must be an integer')
        return self._read('Error fetching products by quantity',
                          lambda: self.product_dao.get_by_quantity(quantity))

    def get_all_employees(self, acting_user: Optional[str] = None) -> List[Employee]:
        """List employees. When an acting user is given it must be an admin."""
        def _fetch():
            if acting_user is not None:
                self._require_admin(acting_user)
            return self.employee_dao.get_all()
        return self._read('Error fetching employees', _fetch)

    # --- Product mutations ---

    def add_product(self, product: Product, acting_user: str) -> Product:
        def _add():
            validate_product(product)
            return self.product_dao.add(product)

        name = getattr(product, 'name', None)
        return self._mutate(
            'ADD_PRODUCT', acting_user, _add,
            done=lambda created: f'Added product: {created.name} (ID: {created.id})',
            failed=f'Failed to add product: {name}',
            fault='Error adding product',
        )

    def update_product(self, product: Product, acting_user: str) -> bool:
        def _update():
            validate_product(product)
            return self.product_dao.update(product)

        name = getattr(product, 'name', None)
        product_id = getattr(product, 'id', None)
        return self._mutate(
            'UPDATE_PRODUCT', acting_user, _update,
            done=lambda changed: (f'Updated product: {name} (ID: {product_id})' if changed
                                  else f'No product with ID: {product_id} to update'),
            failed=f'Failed to update product: {name}',
            fault='Error updating product',
        )

    def delete_product(self, product_id: int, acting_user: str) -> bool:
        return self._mutate(
            'DELETE_PRODUCT', acting_user, lambda: self.product_dao.delete(product_id),
            done=lambda deleted: (f'Deleted product with ID: {product_id}' if deleted
                                  else f'No product with ID: {product_id} to delete'),
            failed=f'Failed to delete product with ID: {product_id}',
            fault='Error deleting product',
        )

    # --- Employee mutations (admin only) ---

    def add_employee(self, employee: Employee, acting_user: str) -> Employee:
        def _add():
            self._require_admin(acting_user)
            validate_employee(employee, require_password=True)
            return self.employee_dao.add(employee)

        username = getattr(employee, 'username', None)
        return self._mutate(
            'ADD_EMPLOYEE', acting_user, _add,
            done=lambda created: f'Added employee: {created.username}',
            failed=f'Failed to add employee: {username}',
            fault='Error adding employee',
        )

    def update_employee(self, employee: Employee, update_password: bool, acting_user: str) -> bool:
        def _update():
            self._require_admin(acting_user)
            validate_employee(employee, require_password=bool(update_password))
            return self.employee_dao.update(employee, bool(update_password))

        username = getattr(employee, 'username', None)
        return self._mutate(
            'UPDATE_EMPLOYEE', acting_user, _update,
            done=lambda changed: (f'Updated employee: {username}' if changed
                                  else f'No employee {username} to update'),
            failed=f'Failed to update employee: {username}',
            fault='Error updating employee',
        )

    def delete_employee(self, employee_id: int, acting_user: str) -> bool:
        def _delete():
            self._require_admin(acting_user)
            return self.employee_dao.delete(employee_id)

        return self._mutate(
            'DELETE_EMPLOYEE', acting_user, _delete,
            done=lambda deleted: (f'Deleted employee with ID: {employee_id}' if deleted
                                  else f'No employee with ID: {employee_id} to delete'),
            failed=f'Failed to delete employee with ID: {employee_id}',
            fault='Error deleting employee',
        )

    # --- Helpers ---

    def _require_admin(self, acting_user: Optional[str]):
        """Re-check the acting user's role against the store on every call."""
        if not acting_user or not self.employee_dao.is_admin(acting_user):
            raise PermissionDenied('Permission denied',
                                   cause=f"user '{acting_user}' is not an administrator")

    def _read(self, fault: str, action: Callable[[], T]) -> T:
        try:
            return action()
        except RemoteFault:
            raise
        except Exception as e:
            logger.error(f'{fault}: {e}')
            raise RemoteFault(fault, cause=e) from e

    def _mutate(self, operation: str, acting_user: str, action: Callable[[], T],
                done: Callable[[T], str], failed: str, fault: str) -> T:
        try:
            result = action()
        except RemoteFault as e:
            self.audit.log('ERROR', f'{failed} ({e})', acting_user)
            raise
        except Exception as e:
            self.audit.log('ERROR', f'{failed} ({e})', acting_user)
            raise RemoteFault(fault, cause=e) from e
        self.audit.log(operation, done(result), acting_user)
        return result
