# Overview: Request decorators for API routes that need a signed-in till user.

from functools import wraps
from flask import request, jsonify, g

from .extensions import get_store
from .services import auth_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a till token and expose the user as g.current_user.

    Returns 401 when the Authorization header is missing or the token does
    not resolve to an existing user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if token is None:
            return jsonify({"error": "Authentication required"}), 401

        user = auth_service.resolve_token(get_store(), token)
        if user is None:
            return jsonify({"error": "Invalid token"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(role: str):
    """
    Require g.current_user to have the given role. Must be applied after
    @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required"}), 401
            if user["role"] != role:
                return jsonify({"error": f"{role} role required"}), 403
            return f(*args, **kwargs)

        return decorated_function

    return decorator
