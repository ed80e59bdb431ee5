# backend/bakery_pos/routes/dashboard.py
"""Dashboard figures; all derived on read."""

from flask import Blueprint, request, jsonify, current_app

from ..extensions import get_store
from ..services import metrics_service
from ..services.settlement_service import serialize_composed


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


def _limit_arg():
    raw = request.args.get("limit")
    if raw is None or raw == "":
        return metrics_service.DEFAULT_LIMIT
    try:
        return metrics_service.clamp_limit(int(raw))
    except ValueError:
        return None


@dashboard_bp.get("/metrics")
def metrics_route():
    try:
        metrics = metrics_service.dashboard_metrics(get_store())
    except Exception:
        current_app.logger.exception("Failed to compute dashboard metrics")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(metrics_service.serialize_metrics(metrics)), 200


@dashboard_bp.get("/popular-items")
def popular_items_route():
    """Query params: limit (1-100, default 10), period (all | today)."""
    limit = _limit_arg()
    if limit is None:
        return jsonify({"error": "limit must be an integer"}), 400
    period = request.args.get("period", "all")
    if period not in ("all", "today"):
        return jsonify({"error": "period must be all or today"}), 400

    items = metrics_service.popular_items(get_store(), limit, today_only=(period == "today"))
    return jsonify([metrics_service.serialize_popular_item(i) for i in items]), 200


@dashboard_bp.get("/recent-orders")
def recent_orders_route():
    """Query params: limit (1-100, default 10)."""
    limit = _limit_arg()
    if limit is None:
        return jsonify({"error": "limit must be an integer"}), 400

    orders = metrics_service.recent_orders(get_store(), limit)
    return jsonify([serialize_composed(o) for o in orders]), 200
