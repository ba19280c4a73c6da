# Overview: Read-only stock monitoring routes (low stock, summary, per-location totals).

from flask import Blueprint, request, jsonify, current_app

from ..errors import StockroomError
from ..services import monitoring_service
from ..validation import ValidationError
from . import error_response


monitoring_bp = Blueprint("monitoring", __name__, url_prefix="/api/monitoring")


@monitoring_bp.get("/low-stock")
def low_stock_route():
    try:
        alerts = monitoring_service.get_low_stock_alerts(request.args.get("threshold") or None)
        return jsonify({"alerts": alerts}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load low stock alerts")
        return jsonify({"error": "Internal server error"}), 500


@monitoring_bp.get("/summary")
def summary_route():
    try:
        summary = monitoring_service.get_stock_summary(request.args.get("threshold") or None)
        return jsonify({"summary": summary}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load stock summary")
        return jsonify({"error": "Internal server error"}), 500


@monitoring_bp.get("/locations")
def location_totals_route():
    try:
        return jsonify({"locations": monitoring_service.get_location_stock_totals()}), 200
    except Exception:
        current_app.logger.exception("Failed to load location stock totals")
        return jsonify({"error": "Internal server error"}), 500
