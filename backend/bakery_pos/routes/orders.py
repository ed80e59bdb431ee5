# Overview: Flask API routes for checkout and orders; parses input and returns JSON responses.

# backend/bakery_pos/routes/orders.py
"""
Order API routes

POST /api/orders runs the settlement engine:
- 201 with {order, items, payments, balance_due, replayed: false}
- 200 with the original order and replayed: true when the idempotency key
  was already settled
"""

from flask import Blueprint, request, jsonify, current_app

from ..extensions import get_store
from ..money import MoneyError, to_decimal
from ..services import settlement_service
from ..services.settlement_service import serialize_composed
from ..models import Order
from ..validation import ValidationError, ConflictError, NotFoundError


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
def list_orders_route():
    """Orders newest first. Query params: status."""
    orders = settlement_service.list_orders(get_store(), status=request.args.get("status"))
    return jsonify([Order.serialize(o) for o in orders]), 200


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        composed = settlement_service.get_order(get_store(), order_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(serialize_composed(composed)), 200


@orders_bp.post("")
def create_order_route():
    """
    Settle a cart.

    Body: {order: {customer_id?, customer_name?, idempotency_key?},
           items: [{product_id, product_name, quantity, unit, unit_price,
                    price_type, gst_rate}],
           payments: [{method, amount, transaction_id?}]}
    """
    payload = request.get_json(silent=True)
    store = get_store()

    try:
        request_args = settlement_service.parse_checkout_payload(payload)
        result = settlement_service.settle(
            store,
            strict_stock=current_app.config.get("STRICT_STOCK_REFERENCES", False),
            **request_args,
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500

    status_code = 200 if result["replayed"] else 201
    return jsonify(serialize_composed(result)), status_code


@orders_bp.post("/<int:order_id>/payments")
def add_payment_route(order_id: int):
    """Follow-up payment against a processing order: {method, amount, transaction_id?}."""
    data = request.get_json(silent=True) or {}

    try:
        amount = to_decimal(data.get("amount"))
    except MoneyError:
        return jsonify({"error": "amount must be a number", "fields": {"amount": "amount must be a number"}}), 400

    try:
        composed = settlement_service.add_payment(
            get_store(),
            order_id,
            method=data.get("method") or "",
            amount=amount,
            transaction_id=data.get("transaction_id"),
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to add payment")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(serialize_composed(composed)), 201


@orders_bp.put("/<int:order_id>/status")
def update_order_status_route(order_id: int):
    """{status}: processing -> completed | cancelled."""
    data = request.get_json(silent=True) or {}
    new_status = data.get("status")
    if not new_status:
        return jsonify({"error": "status is required", "fields": {"status": "status is required"}}), 400

    try:
        composed = settlement_service.transition_order_status(get_store(), order_id, new_status)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(serialize_composed(composed)), 200
