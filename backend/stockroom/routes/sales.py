# Overview: Flask API routes for sales; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..errors import StockroomError
from ..services import sales_service
from ..validation import ValidationError, bool_arg, optional_int_arg, require_json_object
from . import error_response


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")

SALE_OPTIONAL_FIELDS = ("customer_name", "discount_type", "discount_value", "notes", "sold_at")


def _sale_payload(partial: bool) -> dict:
    data = require_json_object(request.get_json(silent=True))
    allowed = {"location_id", "items", *SALE_OPTIONAL_FIELDS}
    unknown = sorted(k for k in data if k not in allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")
    if not partial:
        missing = [k for k in ("location_id", "items") if k not in data]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    if "location_id" in data and (
        isinstance(data["location_id"], bool) or not isinstance(data["location_id"], int)
    ):
        raise ValidationError("location_id must be an integer")
    if "items" in data and not isinstance(data["items"], list):
        raise ValidationError("items must be a list")
    return data


@sales_bp.get("")
def list_sales_route():
    try:
        sales = sales_service.list_sales(
            include_deleted=bool_arg(request.args, "include_deleted"),
            location_id=optional_int_arg(request.args, "location_id"),
        )
        return jsonify({"sales": [s.to_dict(include_items=False) for s in sales]}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("")
def create_sale_route():
    """
    Post a sale. Stock leaves the location immediately.

    Request body:
    {
        "location_id": int,
        "items": [{"product_id": int, "quantity": number, "uom_id": int?, "unit_price_cents": int?}],
        "customer_name": str?, "discount_type": "percentage" | "fixed"?,
        "discount_value": number?, "notes": str?, "sold_at": ISO-8601?
    }
    """
    try:
        data = _sale_payload(partial=False)
        sale = sales_service.create_sale(
            data["location_id"],
            data["items"],
            **{k: data[k] for k in SALE_OPTIONAL_FIELDS if k in data},
        )
        return jsonify({"sale": sale.to_dict()}), 201
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id, include_deleted=bool_arg(request.args, "include_deleted"))
        return jsonify({"sale": sale.to_dict()}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/<int:sale_id>")
def update_sale_route(sale_id: int):
    try:
        data = _sale_payload(partial=True)
        sale = sales_service.update_sale(sale_id, **data)
        return jsonify({"sale": sale.to_dict()}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>")
def delete_sale_route(sale_id: int):
    try:
        sale = sales_service.soft_delete_sale(sale_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/restore")
def restore_sale_route(sale_id: int):
    try:
        sale = sales_service.restore_sale(sale_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to restore sale")
        return jsonify({"error": "Internal server error"}), 500
