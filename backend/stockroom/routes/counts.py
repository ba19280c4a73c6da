# Overview: Flask API routes for stock counts (opname); parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..errors import StockroomError
from ..services import count_service
from ..validation import ValidationError, bool_arg, optional_int_arg, require_json_object
from . import error_response


counts_bp = Blueprint("stock_counts", __name__, url_prefix="/api/stock-counts")


@counts_bp.get("")
def list_counts_route():
    try:
        counts = count_service.list_stock_counts(
            include_deleted=bool_arg(request.args, "include_deleted"),
            status=request.args.get("status") or None,
            location_id=optional_int_arg(request.args, "location_id"),
        )
        return jsonify({"stock_counts": [c.to_dict() for c in counts]}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list stock counts")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.post("")
def create_count_route():
    """
    Start a count at a location.

    Request body:
    {
        "location_id": int,
        "items": [{"product_id": int, "actual_quantity": number, "notes": str?}],
        "counted_at": ISO-8601?, "notes": str?
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        if "location_id" not in data:
            raise ValidationError("Missing required fields: location_id")
        count = count_service.create_stock_count(
            data["location_id"],
            data.get("items"),
            counted_at=data.get("counted_at"),
            notes=data.get("notes"),
        )
        return jsonify({"stock_count": count.to_dict()}), 201
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create stock count")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.get("/<int:count_id>")
def get_count_route(count_id: int):
    try:
        count = count_service.get_stock_count(count_id, include_deleted=bool_arg(request.args, "include_deleted"))
        return jsonify({"stock_count": count.to_dict()}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load stock count")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.patch("/<int:count_id>")
def update_count_route(count_id: int):
    try:
        data = require_json_object(request.get_json(silent=True))
        count = count_service.update_stock_count(
            count_id,
            items=data.get("items"),
            notes=data.get("notes"),
        )
        return jsonify({"stock_count": count.to_dict()}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update stock count")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.post("/<int:count_id>/complete")
def complete_count_route(count_id: int):
    try:
        count = count_service.complete_stock_count(count_id)
        return jsonify({"stock_count": count.to_dict()}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to complete stock count")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.post("/<int:count_id>/cancel")
def cancel_count_route(count_id: int):
    try:
        count = count_service.cancel_stock_count(count_id)
        return jsonify({"stock_count": count.to_dict()}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel stock count")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.delete("/<int:count_id>")
def delete_count_route(count_id: int):
    try:
        count = count_service.soft_delete_stock_count(count_id)
        return jsonify({"stock_count": count.to_dict()}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete stock count")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.post("/<int:count_id>/restore")
def restore_count_route(count_id: int):
    try:
        count = count_service.restore_stock_count(count_id)
        return jsonify({"stock_count": count.to_dict()}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to restore stock count")
        return jsonify({"error": "Internal server error"}), 500
