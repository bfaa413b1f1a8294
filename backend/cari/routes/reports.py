# Overview: Flask API routes for reporting; read-only aggregates.

from flask import Blueprint, request

from ..validation import ValidationError
from ..services.reporting_service import daily_report, monthly_report, dashboard_summary, stats
from ..time_utils import today

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")
dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")
stats_bp = Blueprint("stats", __name__, url_prefix="/api/stats")


@reports_bp.get("/daily")
def daily_report_route():
    """Query params: date=YYYY-MM-DD (default today)."""
    try:
        return daily_report(request.args.get("date")), 200
    except ValidationError as e:
        return {"error": str(e)}, 400


@reports_bp.get("/monthly")
def monthly_report_route():
    """Query params: year, month (default current month)."""
    now = today()
    year = request.args.get("year", default=now.year, type=int)
    month = request.args.get("month", default=now.month, type=int)
    try:
        return monthly_report(year, month), 200
    except ValidationError as e:
        return {"error": str(e)}, 400


@dashboard_bp.get("")
def dashboard_route():
    return dashboard_summary(), 200


@stats_bp.get("")
def stats_route():
    return stats(), 200
