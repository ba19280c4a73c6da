# Overview: Flask API routes for UOM conversions; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..models import UOMConversion
from ..numbers import format_quantity
from ..errors import StockroomError
from ..services import uom_service
from ..services.catalog_service import get_uom
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    validate_payload,
    optional_int_arg,
    require_json_object,
)
from . import error_response


uoms_bp = Blueprint("uoms", __name__, url_prefix="/api/uoms")

CONVERSION_POLICY = ModelValidationPolicy(
    writable_fields={"from_uom_id", "to_uom_id", "rate"},
    required_on_create={"from_uom_id", "to_uom_id", "rate"},
)


@uoms_bp.get("/conversions")
def list_conversions_route():
    try:
        uom_id = optional_int_arg(request.args, "uom_id")
        conversions = uom_service.list_conversions(uom_id)
        return jsonify({"conversions": [c.to_dict() for c in conversions]}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list UOM conversions")
        return jsonify({"error": "Internal server error"}), 500


@uoms_bp.post("/conversions")
def create_conversion_route():
    """
    Register a conversion.

    Request body:
    {
        "from_uom_id": int,
        "to_uom_id": int,
        "rate": number   (quantity_in_to = quantity_in_from * rate)
    }
    """
    try:
        patch = validate_payload(
            model=UOMConversion,
            payload=request.get_json(silent=True),
            policy=CONVERSION_POLICY,
            partial=False,
        )
        conversion = uom_service.create_conversion(
            patch["from_uom_id"], patch["to_uom_id"], patch["rate"]
        )
        return jsonify({"conversion": conversion.to_dict()}), 201
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create UOM conversion")
        return jsonify({"error": "Internal server error"}), 500


@uoms_bp.patch("/conversions/<int:conversion_id>")
def update_conversion_route(conversion_id: int):
    try:
        patch = validate_payload(
            model=UOMConversion,
            payload=request.get_json(silent=True),
            policy=CONVERSION_POLICY,
            partial=True,
        )
        conversion = uom_service.update_conversion(conversion_id, **patch)
        return jsonify({"conversion": conversion.to_dict()}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update UOM conversion")
        return jsonify({"error": "Internal server error"}), 500


@uoms_bp.delete("/conversions/<int:conversion_id>")
def delete_conversion_route(conversion_id: int):
    try:
        uom_service.delete_conversion(conversion_id)
        return jsonify({"deleted": True, "id": conversion_id}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete UOM conversion")
        return jsonify({"error": "Internal server error"}), 500


@uoms_bp.get("/<int:uom_id>/available")
def available_units_route(uom_id: int):
    """Units a quantity may be entered in when uom_id is the base unit."""
    try:
        get_uom(uom_id)
        unit_ids = sorted(uom_service.available_units(uom_id))
        units = [get_uom(unit_id, include_deleted=True).to_dict() for unit_id in unit_ids]
        return jsonify({"uom_id": uom_id, "units": units}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list available units")
        return jsonify({"error": "Internal server error"}), 500


@uoms_bp.post("/convert")
def convert_route():
    try:
        data = require_json_object(request.get_json(silent=True))
        missing = sorted(k for k in ("quantity", "from_uom_id", "to_uom_id") if k not in data)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        from_uom_id = data["from_uom_id"]
        to_uom_id = data["to_uom_id"]
        converted = uom_service.convert(data["quantity"], from_uom_id, to_uom_id)
        rate = uom_service.resolve_rate(from_uom_id, to_uom_id)
        return jsonify({
            "quantity": format_quantity(converted),
            "rate": str(rate),
            "from_uom_id": from_uom_id,
            "to_uom_id": to_uom_id,
        }), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to convert quantity")
        return jsonify({"error": "Internal server error"}), 500
