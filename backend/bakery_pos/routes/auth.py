# Overview: Flask API routes for till sign-in; parses input and returns JSON responses.

# backend/bakery_pos/routes/auth.py
"""
Authentication API routes

The till token is an opaque identifier for the signed-in user, sent back as
`Authorization: Bearer <token>`. It is not a security mechanism.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import get_store
from ..services import auth_service
from ..services.auth_service import AuthError
from ..validation import ValidationError
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """Verify credentials; returns {user, token}."""
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    password = data.get("password")

    try:
        result = auth_service.login(get_store(), username, password)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except AuthError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to log in")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(result), 200


@auth_bp.post("/logout")
def logout_route():
    # Tokens are not tracked server-side; the client drops its copy
    return jsonify({"message": "Logged out successfully"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user}), 200
