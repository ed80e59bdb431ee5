# Overview: Flask API routes for catalog products; parses input and returns JSON responses.

# backend/bakery_pos/routes/products.py
"""
Product management routes.

Prices travel as decimal strings ("120.00"); numbers are accepted on input.
"""
from flask import Blueprint, request, jsonify, current_app

from ..extensions import get_store
from ..models import Product
from ..services import catalog_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
    NotFoundError,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=set(catalog_service.PRODUCT_MUTABLE_FIELDS),
    required_on_create={"name", "sku", "category", "counter_price", "wholesale_price", "unit", "gst_rate"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List the catalog.

    Query params:
    - category: exact category name ("All" for every category)
    - search: case-insensitive match on name, SKU or category
    """
    products = catalog_service.list_products(
        get_store(),
        category=request.args.get("category"),
        search=request.args.get("search"),
    )
    return jsonify([Product.serialize(p) for p in products]), 200


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(get_store(), product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(Product.serialize(product)), 200


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        created = catalog_service.create_product(get_store(), patch=patch)
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(Product.serialize(created)), 201


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        updated = catalog_service.update_product(get_store(), product_id, patch=patch)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(Product.serialize(updated)), 200


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    try:
        catalog_service.delete_product(get_store(), product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Product deleted successfully"}), 200


@products_bp.post("/<int:product_id>/stock")
def adjust_stock_route(product_id: int):
    """
    Move stock by {"delta": int}; negative deltas are clamped at zero stock.
    """
    data = request.get_json(silent=True) or {}
    if "delta" not in data:
        return jsonify({"error": "delta is required", "fields": {"delta": "delta is required"}}), 400

    try:
        product = catalog_service.adjust_stock(get_store(), product_id, data["delta"])
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(Product.serialize(product)), 200
