# Overview: Flask API routes for reports.

from flask import Blueprint, jsonify, request

from ..decorators import require_auth
from ..money import to_decimal
from ..services import reporting_service
from ..time_utils import parse_day, utcnow

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/daily")
@require_auth
def daily_summary_route():
    """
    Query params:
    - date: YYYY-MM-DD (default today, UTC)
    - opening_cash: cash in the drawer at opening (default 0)
    """
    try:
        day = parse_day(request.args.get("date")) or utcnow().date()
        opening_cash = to_decimal(request.args.get("opening_cash") or 0, field="opening_cash")
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"summary": reporting_service.daily_summary(day, opening_cash)}), 200
