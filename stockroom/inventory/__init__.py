"""Inventory: product catalog and employee management façade."""
