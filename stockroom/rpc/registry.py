"""Service registry - named services the listener dispatches to."""
import threading
from typing import Any, List

from stockroom.exceptions import AlreadyBound, NotBound

INVENTORY_SERVICE = 'InventoryService'
AUTH_SERVICE = 'AuthService'


class ServiceRegistry:
    """Thread-safe name -> service map.

    A service advertises the methods callable over the wire in its
    ``REMOTE_METHODS`` attribute; nothing else is dispatchable.
    """

    def __init__(self):
        self._services = {}
        self._lock = threading.RLock()

    def bind(self, name: str, service: Any):
        with self._lock:
            if name in self._services:
                raise AlreadyBound(name)
            self._services[name] = service

    def rebind(self, name: str, service: Any):
        with self._lock:
            self._services[name] = service

    def unbind(self, name: str):
        with self._lock:
            if name not in self._services:
                raise NotBound(name)
            del self._services[name]

    def lookup(self, name: str) -> Any:
        with self._lock:
            try:
                return self._services[name]
            except KeyError:
                raise NotBound(name) from None

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._services)

    def remote_method(self, service_name: str, method_name: str):
        """Resolve a bound service method that is exposed remotely, or raise NotBound."""
        service = self.lookup(service_name)
        if method_name not in getattr(service, 'REMOTE_METHODS', ()):
            raise NotBound(f'{service_name}.{method_name}')
        return getattr(service, method_name)
