# backend/bakery_pos/routes/users.py
"""Staff account management (admin only)."""

from flask import Blueprint, request, jsonify, current_app

from ..extensions import get_store
from ..services import auth_service
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_role


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role("admin")
def list_users_route():
    return jsonify(auth_service.list_users(get_store())), 200


@users_bp.post("")
@require_auth
@require_role("admin")
def create_user_route():
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            get_store(),
            username=data.get("username"),
            password=data.get("password"),
            role=data.get("role") or "cashier",
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(user), 201
