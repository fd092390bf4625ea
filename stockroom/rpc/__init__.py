"""Remote call layer: service registry, wire codec, listener app and client."""
from .client import RemoteClient
from .registry import AUTH_SERVICE, INVENTORY_SERVICE, ServiceRegistry

__all__ = ['RemoteClient', 'ServiceRegistry', 'INVENTORY_SERVICE', 'AUTH_SERVICE']
