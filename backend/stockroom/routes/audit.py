# Overview: Read access to the audit trail.

from flask import Blueprint, request, jsonify, current_app

from ..errors import StockroomError
from ..services.audit_service import list_audit_trail
from ..validation import ValidationError, optional_int_arg
from . import error_response


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")


@audit_bp.get("")
def list_audit_route():
    """Filter with ?entity_type=procurement&entity_id=3&action=approve."""
    try:
        entries = list_audit_trail(
            entity_type=request.args.get("entity_type") or None,
            entity_id=optional_int_arg(request.args, "entity_id"),
            action=request.args.get("action") or None,
            limit=optional_int_arg(request.args, "limit") or 100,
            offset=optional_int_arg(request.args, "offset") or 0,
        )
        return jsonify({"entries": [entry.to_dict() for entry in entries]}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list audit trail")
        return jsonify({"error": "Internal server error"}), 500
