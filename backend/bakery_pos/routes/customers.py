# backend/bakery_pos/routes/customers.py
"""Customer management routes."""
from flask import Blueprint, request, jsonify, current_app

from ..extensions import get_store
from ..models import Customer
from ..services import customer_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_customer,
    ValidationError,
    ConflictError,
    NotFoundError,
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields=set(customer_service.CUSTOMER_MUTABLE_FIELDS),
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
def list_customers_route():
    """Query params: search (name, phone or email)."""
    customers = customer_service.list_customers(get_store(), search=request.args.get("search"))
    return jsonify([Customer.serialize(c) for c in customers]), 200


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(get_store(), customer_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(Customer.serialize(customer)), 200


@customers_bp.post("")
def create_customer_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        created = customer_service.create_customer(get_store(), patch=patch)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(Customer.serialize(created)), 201


@customers_bp.put("/<int:customer_id>")
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        updated = customer_service.update_customer(get_store(), customer_id, patch=patch)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(Customer.serialize(updated)), 200


@customers_bp.delete("/<int:customer_id>")
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(get_store(), customer_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Customer deleted successfully"}), 200
