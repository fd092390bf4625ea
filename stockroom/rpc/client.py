"""Stockroom remote client.

Usage:
    client = RemoteClient('inventory.local', 1099)
    me = client.auth.authenticate('alice', 'secret')
    if me.authenticated:
        client.inventory.add_product(Product('Hammer', 'Tools', 10, Decimal('12.50')), me.username)

Every call either returns the decoded result or raises a RemoteFault.
"""
import time

import requests

from stockroom.exceptions import REMOTE_FAULTS, RemoteFault
from stockroom.rpc.codec import decode_result, encode_call
from stockroom.rpc.registry import AUTH_SERVICE, INVENTORY_SERVICE

REQUEST_TIMEOUT = 30  # seconds
MAX_RETRIES = 3
RETRY_BASE_DELAY = 0.5  # seconds


class ServiceProxy:
    """Attribute access returns a callable for the remote method of the same name."""

    def __init__(self, client: 'RemoteClient', service_name: str):
        self._client = client
        self._service_name = service_name

    def __getattr__(self, method_name):
        if method_name.startswith('_'):
            raise AttributeError(method_name)

        def _call(*args, **kwargs):
            return self._client.call(self._service_name, method_name, *args, **kwargs)

        _call.__name__ = method_name
        return _call

    def __repr__(self):
        return f'<ServiceProxy {self._service_name} at {self._client.base_url}>'


class RemoteClient:
    """Client for the Stockroom remote interface."""

    def __init__(self, host='localhost', port=1099, timeout=REQUEST_TIMEOUT, session=None):
        self.base_url = f'http://{host}:{port}'
        self.timeout = timeout
        self._session = session or requests.Session()

    @property
    def inventory(self) -> ServiceProxy:
        return self.service(INVENTORY_SERVICE)

    @property
    def auth(self) -> ServiceProxy:
        return self.service(AUTH_SERVICE)

    def service(self, name: str) -> ServiceProxy:
        return ServiceProxy(self, name)

    def call(self, service_name: str, method_name: str, *args, **kwargs):
        """Invoke a remote method and decode its result."""
        url = f'{self.base_url}/rpc/{service_name}/{method_name}'
        resp = self._post(url, encode_call(args, kwargs))
        body = self._parse_json(resp)

        if resp.status_code >= 400 or not body.get('success'):
            raise self._fault_from(body, resp.status_code)
        return decode_result(method_name, body.get('result'))

    def close(self):
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _post(self, url, payload):
        """POST with retries on connection failures only.

        Timeouts are not retried: the call may have been applied.
        """
        for attempt in range(MAX_RETRIES):
            try:
                return self._session.post(url, json=payload, timeout=self.timeout)
            except requests.exceptions.Timeout as e:
                raise RemoteFault('Remote call timed out', cause=e) from e
            except requests.exceptions.ConnectionError as e:
                if attempt < MAX_RETRIES - 1:
                    time.sleep(RETRY_BASE_DELAY * (attempt + 1))
                    continue
                raise RemoteFault(f'Cannot connect to {self.base_url}', cause=e) from e
        raise RemoteFault(f'Max retries exceeded for {url}')

    @staticmethod
    def _parse_json(resp) -> dict:
        try:
            body = resp.json()
        except ValueError as e:
            raise RemoteFault(f'Invalid response (HTTP {resp.status_code})', cause=e) from e
        if not isinstance(body, dict):
            raise RemoteFault(f'Invalid response (HTTP {resp.status_code})', cause='expected a JSON object')
        return body

    @staticmethod
    def _fault_from(body: dict, status_code: int) -> RemoteFault:
        error = body.get('error') or {}
        fault_cls = REMOTE_FAULTS.get(error.get('type'), RemoteFault)
        return fault_cls(error.get('message') or f'HTTP {status_code}', cause=error.get('cause'))
