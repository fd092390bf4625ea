"""Inventory Repositories Package.

Data access layer for the product catalog.
"""
from .product_dao import ProductDAO

__all__ = ['ProductDAO']
