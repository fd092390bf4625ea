"""JSON wire codec for remote calls.

Arguments travel as ``{"args": [...], "kwargs": {...}}``. Records are plain
objects (see Product.to_dict / Employee.to_dict); the parameter name tells
the server which record type to rebuild, and RESULT_TYPES tells the client.
"""
import inspect
from typing import Any, Callable, Dict, Tuple

from stockroom.models import Employee, Product

# Parameter name -> record type rebuilt on the server
ARGUMENT_TYPES = {
    'product': Product,
    'employee': Employee,
}

# Remote method -> record type its result is made of
RESULT_TYPES = {
    'get_all_products': Product,
    'get_products_by_category': Product,
    'get_products_by_name': Product,
    'get_products_by_quantity': Product,
    'add_product': Product,
    'get_all_employees': Employee,
    'add_employee': Employee,
    'authenticate': Employee,
}


def encode_value(value: Any, include_password: bool = False) -> Any:
    if isinstance(value, Employee):
        return value.to_dict(include_password=include_password)
    if isinstance(value, Product):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [encode_value(v, include_password) for v in value]
    return value


def encode_call(args: Tuple, kwargs: Dict[str, Any]) -> Dict[str, Any]:
    """Client side: build the request body. Employee passwords are sent so add/update can hash them."""
    return {
        'args': [encode_value(a, include_password=True) for a in args],
        'kwargs': {k: encode_value(v, include_password=True) for k, v in kwargs.items()},
    }


def decode_call(method: Callable, body: Dict[str, Any]) -> inspect.BoundArguments:
    """Server side: bind the request body to the method signature.

    Raises:
        TypeError: arguments do not fit the signature.
        ValueError / KeyError: a record could not be rebuilt.
    """
    args = body.get('args') or []
    kwargs = body.get('kwargs') or {}
    if not isinstance(args, list) or not isinstance(kwargs, dict):
        raise TypeError("'args' must be a list and 'kwargs' an object")

    bound = inspect.signature(method).bind(*args, **kwargs)
    for name, value in bound.arguments.items():
        record_type = ARGUMENT_TYPES.get(name)
        if record_type is not None and isinstance(value, dict):
            bound.arguments[name] = record_type.from_dict(value)
    return bound


def encode_result(value: Any) -> Any:
    """Server side: serialise a result. Password hashes never leave the server."""
    return encode_value(value, include_password=False)


def decode_result(method_name: str, value: Any) -> Any:
    """Client side: rebuild records in a result."""
    record_type = RESULT_TYPES.get(method_name)
    if record_type is None or value is None:
        return value
    if isinstance(value, list):
        return [record_type.from_dict(v) for v in value]
    return record_type.from_dict(value)
