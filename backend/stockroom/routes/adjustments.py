# backend/stockroom/routes/adjustments.py
"""
Procurement and disposal routes.

Both documents share one lifecycle (pending -> approved | rejected, soft
delete, restore), so one blueprint factory serves both:
/api/procurements and /api/disposals.
"""
from flask import Blueprint, request, jsonify, current_app

from ..errors import StockroomError
from ..services import adjustment_service as engine
from ..services.adjustment_service import AdjustmentKind
from ..services.disposal_service import DISPOSAL
from ..services.procurement_service import PROCUREMENT
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    validate_payload,
    enforce_price_cents,
    bool_arg,
    optional_int_arg,
)
from . import error_response


CORE_FIELDS = {"product_id", "location_id", "quantity", "uom_id", "pic", "notes"}


def make_adjustment_blueprint(kind: AdjustmentKind, url_prefix: str) -> Blueprint:
    singular = kind.entity_type
    plural = f"{kind.entity_type}s"
    bp = Blueprint(plural, __name__, url_prefix=url_prefix)

    create_policy = ModelValidationPolicy(
        writable_fields=CORE_FIELDS | set(kind.extra_fields),
        required_on_create={"product_id", "location_id", "quantity"},
    )
    update_policy = ModelValidationPolicy(
        writable_fields=CORE_FIELDS | set(kind.extra_fields) | {"status"},
    )

    def _clean(partial: bool) -> dict:
        patch = validate_payload(
            model=kind.model,
            payload=request.get_json(silent=True),
            policy=update_policy if partial else create_policy,
            partial=partial,
        )
        if "unit_price_cents" in kind.extra_fields:
            enforce_price_cents(patch, "unit_price_cents")
        return patch

    @bp.get("")
    def list_route():
        try:
            rows = engine.list_adjustments(
                kind,
                include_deleted=bool_arg(request.args, "include_deleted"),
                status=request.args.get("status") or None,
                product_id=optional_int_arg(request.args, "product_id"),
                location_id=optional_int_arg(request.args, "location_id"),
            )
            return jsonify({plural: [row.to_dict() for row in rows]}), 200
        except (StockroomError, ValidationError) as e:
            return error_response(e)
        except Exception:
            current_app.logger.exception("Failed to list %s", plural)
            return jsonify({"error": "Internal server error"}), 500

    @bp.post("")
    def create_route():
        try:
            patch = _clean(partial=False)
            row = engine.create_adjustment(kind, **patch)
            return jsonify({singular: row.to_dict()}), 201
        except (StockroomError, ValidationError) as e:
            return error_response(e)
        except Exception:
            current_app.logger.exception("Failed to create %s", singular)
            return jsonify({"error": "Internal server error"}), 500

    @bp.get("/<int:entity_id>")
    def get_route(entity_id: int):
        try:
            row = engine.get_adjustment(
                kind, entity_id, include_deleted=bool_arg(request.args, "include_deleted")
            )
            return jsonify({singular: row.to_dict()}), 200
        except (StockroomError, ValidationError) as e:
            return error_response(e)
        except Exception:
            current_app.logger.exception("Failed to load %s", singular)
            return jsonify({"error": "Internal server error"}), 500

    @bp.patch("/<int:entity_id>")
    def update_route(entity_id: int):
        try:
            patch = _clean(partial=True)
            row = engine.update_adjustment(kind, entity_id, **patch)
            return jsonify({singular: row.to_dict()}), 200
        except (StockroomError, ValidationError) as e:
            return error_response(e)
        except Exception:
            current_app.logger.exception("Failed to update %s", singular)
            return jsonify({"error": "Internal server error"}), 500

    @bp.post("/<int:entity_id>/approve")
    def approve_route(entity_id: int):
        try:
            row = engine.approve_adjustment(kind, entity_id)
            return jsonify({singular: row.to_dict()}), 200
        except (StockroomError, ValidationError) as e:
            return error_response(e)
        except Exception:
            current_app.logger.exception("Failed to approve %s", singular)
            return jsonify({"error": "Internal server error"}), 500

    @bp.post("/<int:entity_id>/reject")
    def reject_route(entity_id: int):
        try:
            row = engine.reject_adjustment(kind, entity_id)
            return jsonify({singular: row.to_dict()}), 200
        except (StockroomError, ValidationError) as e:
            return error_response(e)
        except Exception:
            current_app.logger.exception("Failed to reject %s", singular)
            return jsonify({"error": "Internal server error"}), 500

    @bp.delete("/<int:entity_id>")
    def delete_route(entity_id: int):
        try:
            row = engine.soft_delete_adjustment(kind, entity_id)
            return jsonify({singular: row.to_dict()}), 200
        except (StockroomError, ValidationError) as e:
            return error_response(e)
        except Exception:
            current_app.logger.exception("Failed to delete %s", singular)
            return jsonify({"error": "Internal server error"}), 500

    @bp.post("/<int:entity_id>/restore")
    def restore_route(entity_id: int):
        try:
            row = engine.restore_adjustment(kind, entity_id)
            return jsonify({singular: row.to_dict()}), 200
        except (StockroomError, ValidationError) as e:
            return error_response(e)
        except Exception:
            current_app.logger.exception("Failed to restore %s", singular)
            return jsonify({"error": "Internal server error"}), 500

    return bp


procurements_bp = make_adjustment_blueprint(PROCUREMENT, "/api/procurements")
disposals_bp = make_adjustment_blueprint(DISPOSAL, "/api/disposals")
