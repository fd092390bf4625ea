"""Remote call listener - Flask app dispatching named calls to bound services.

    POST /rpc/<service>/<method>   body: {"args": [...], "kwargs": {...}}
    GET  /health

Responses follow the usual shape:
    {"success": true, "result": ...}
    {"success": false, "error": {"type": ..., "message": ..., "cause": ...}}
"""
from typing import Callable, Optional

from flask import Flask, jsonify, request

from stockroom.core.utils.logging_config import get_logger
from stockroom.exceptions import NotBound, RemoteFault, ServiceUnavailable, ValidationFault
from stockroom.rpc.codec import decode_call, encode_result

logger = get_logger('stockroom.rpc')


def _fault_response(fault: RemoteFault):
    return jsonify({'success': False, 'error': fault.to_dict()}), fault.status_code


def create_app(registry, health_check: Optional[Callable[[], bool]] = None) -> Flask:
    """Build the dispatch app for a registry.

    Args:
        registry: ServiceRegistry whose bound services are callable.
        health_check: Optional callable reporting data store health.
    """
    app = Flask('stockroom')

    @app.route('/rpc/<service_name>/<method_name>', methods=['POST'])
    def dispatch(service_name, method_name):
        try:
            method = registry.remote_method(service_name, method_name)
        except NotBound as e:
            return _fault_response(ServiceUnavailable('Service unavailable', cause=e))

        body = request.get_json(silent=True)
        if body is None:
            body = {}
        if not isinstance(body, dict):
            return _fault_response(ValidationFault('Invalid request', cause='body must be a JSON object'))

        try:
            bound = decode_call(method, body)
        except (TypeError, ValueError, KeyError) as e:
            return _fault_response(ValidationFault('Invalid arguments', cause=e))

        try:
            result = method(*bound.args, **bound.kwargs)
        except RemoteFault as e:
            return _fault_response(e)
        except Exception as e:
            # Services only raise RemoteFault; anything else is a bug
            logger.exception(f'Unhandled error in {service_name}.{method_name}')
            return _fault_response(RemoteFault('An internal error occurred', cause=type(e).__name__))

        return jsonify({'success': True, 'result': encode_result(result)})

    @app.route('/health', methods=['GET'])
    def health():
        database_ok = health_check() if health_check is not None else None
        healthy = database_ok is not False
        return jsonify({
            'status': 'ok' if healthy else 'degraded',
            'services': registry.names(),
            'database': database_ok,
        }), 200 if healthy else 503

    return app
