"""
Auth Services

Credential checks exposed to remote clients.
"""

from .auth_service import AuthService

__all__ = ['AuthService']
