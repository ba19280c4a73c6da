# backend/stockroom/routes/stock.py
"""
Stock ledger routes: levels, movements, reconciliation and transfers.

Levels and movements are read-only here; stock changes only through the
document endpoints (procurements, disposals, sales, stock counts) and
POST /transfers.
"""
from flask import Blueprint, request, jsonify, current_app

from ..errors import StockroomError
from ..numbers import ZERO, format_quantity
from ..services import stock_service, transfer_service
from ..services.catalog_service import get_product
from ..validation import ValidationError, optional_int_arg, require_json_object
from . import error_response


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("/levels")
def list_levels_route():
    try:
        levels = stock_service.list_stock_levels(
            product_id=optional_int_arg(request.args, "product_id"),
            location_id=optional_int_arg(request.args, "location_id"),
        )
        return jsonify({"levels": [level.to_dict() for level in levels]}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list stock levels")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/products/<int:product_id>/locations")
def product_locations_route(product_id: int):
    try:
        product = get_product(product_id)
        levels = stock_service.get_product_location_stocks(product_id)
        total = sum((level.stock for level in levels), ZERO)
        return jsonify({
            "product": product.to_dict(),
            "locations": [level.to_dict() for level in levels],
            "total_stock": format_quantity(total),
        }), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load product stock by location")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/movements")
def list_movements_route():
    try:
        limit = optional_int_arg(request.args, "limit") or 100
        offset = optional_int_arg(request.args, "offset") or 0
        movements = stock_service.list_stock_movements(
            product_id=optional_int_arg(request.args, "product_id"),
            location_id=optional_int_arg(request.args, "location_id"),
            movement_type=request.args.get("movement_type") or None,
            reference_type=request.args.get("reference_type") or None,
            reference_id=optional_int_arg(request.args, "reference_id"),
            limit=limit,
            offset=offset,
        )
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/reconcile")
def reconcile_route():
    try:
        mismatches = stock_service.reconcile()
        return jsonify({"ok": not mismatches, "mismatches": mismatches}), 200
    except Exception:
        current_app.logger.exception("Failed to reconcile stock")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.post("/transfers")
def transfer_route():
    """
    Move stock between locations.

    Request body:
    {
        "product_id": int,
        "from_location_id": int,
        "to_location_id": int,
        "quantity": number,
        "uom_id": int (optional, defaults to the product's base unit),
        "notes": str (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        required = ("product_id", "from_location_id", "to_location_id", "quantity")
        missing = [k for k in required if k not in data]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        result = transfer_service.transfer_stock(
            data["product_id"],
            data["from_location_id"],
            data["to_location_id"],
            data["quantity"],
            notes=data.get("notes"),
            uom_id=data.get("uom_id"),
        )
        return jsonify({"transfer": result.to_dict()}), 201
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to transfer stock")
        return jsonify({"error": "Internal server error"}), 500
