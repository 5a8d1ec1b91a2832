# Overview: Flask API routes for reports operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import STAFF_ROLES, require_auth, require_role
from ..services import reporting_service
from ..services.reporting_service import ReportError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/revenue/daily")
@require_auth
@require_role(*STAFF_ROLES)
def daily_revenue_route():
    """Query params: date (YYYY-MM-DD, default today UTC)."""
    try:
        return jsonify(reporting_service.daily_revenue_report(request.args.get("date"))), 200
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build daily revenue report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/revenue/range")
@require_auth
@require_role(*STAFF_ROLES)
def revenue_range_route():
    """Query params: start_date, end_date (YYYY-MM-DD, both inclusive, required)."""
    try:
        reports = reporting_service.revenue_range(
            request.args.get("start_date"),
            request.args.get("end_date"),
        )
        return jsonify({"reports": reports}), 200
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build revenue range report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/stats/dashboard")
@require_auth
@require_role(*STAFF_ROLES)
def dashboard_route():
    try:
        return jsonify(reporting_service.dashboard()), 200
    except Exception:
        current_app.logger.exception("Failed to build dashboard stats")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/stats/sales")
@require_auth
@require_role(*STAFF_ROLES)
def sales_route():
    """Query params: start_date, end_date (default: the last 7 days)."""
    try:
        series = reporting_service.sales_series(
            request.args.get("start_date"),
            request.args.get("end_date"),
        )
        return jsonify({"sales": series}), 200
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build sales stats")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/stats/top-products")
@require_auth
@require_role(*STAFF_ROLES)
def top_products_route():
    limit = request.args.get("limit", type=int)
    return jsonify({"products": reporting_service.top_products(limit)}), 200
