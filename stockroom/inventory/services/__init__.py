from .inventory_service import InventoryService, validate_employee, validate_product

__all__ = ['InventoryService', 'validate_employee', 'validate_product']
