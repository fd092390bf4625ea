"""Stockroom - remote inventory backend.

Serves product and employee management plus authentication to remote
clients over a pooled PostgreSQL store.
"""
__version__ = '1.0.0'
