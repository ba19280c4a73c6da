# Overview: Dashboard report routes; every report takes optional date_from/date_to days.

from flask import Blueprint, request, jsonify, current_app

from ..errors import StockroomError
from ..services import reporting_service
from ..validation import ValidationError, optional_int_arg
from . import error_response


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _range():
    return {
        "date_from": request.args.get("date_from"),
        "date_to": request.args.get("date_to"),
    }


@reports_bp.get("/sales-by-date")
def sales_by_date_route():
    try:
        return jsonify(reporting_service.get_sales_by_date(**_range())), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build sales report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/procurements-by-date")
def procurements_by_date_route():
    try:
        return jsonify(reporting_service.get_procurements_by_date(**_range())), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build procurement report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/disposals-by-date")
def disposals_by_date_route():
    try:
        return jsonify(reporting_service.get_disposals_by_date(**_range())), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build disposal report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/top-products")
def top_products_route():
    try:
        limit = optional_int_arg(request.args, "limit")
        report = reporting_service.get_top_products(10 if limit is None else limit, **_range())
        return jsonify(report), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build top products report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/locations")
def location_stats_route():
    try:
        return jsonify(reporting_service.get_location_stats(**_range())), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build location report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/summary")
def dashboard_summary_route():
    try:
        return jsonify({"summary": reporting_service.get_dashboard_summary(**_range())}), 200
    except (StockroomError, ValidationError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build dashboard summary")
        return jsonify({"error": "Internal server error"}), 500
