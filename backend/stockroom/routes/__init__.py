# Overview: Shared JSON error rendering for the API blueprints.

from flask import jsonify

from ..errors import StockroomError


def error_response(exc: Exception):
    """Render a domain or payload error as {"error", "code", "details"} with its status."""
    if isinstance(exc, StockroomError):
        return jsonify(exc.to_dict()), exc.http_status
    return jsonify({"error": str(exc), "code": "invalid_input", "details": {}}), 400
