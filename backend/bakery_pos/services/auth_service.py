# Overview: Service-layer operations for staff accounts, password hashing and till tokens.

"""
Authentication Service

Staff sign in with username + password and receive an opaque till token
(`token_<user id>_<issued ms>`). The token only identifies the user for the
till UI; it is not signed and carries no security guarantee.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Usernames are unique across the store
"""

from __future__ import annotations

import logging
import time

import bcrypt
from flask import current_app, has_app_context

from ..models import User
from ..validation import ConflictError, ValidationError, enforce_rules_user

logger = logging.getLogger(__name__)

DEFAULT_ROUNDS = 12
TOKEN_PREFIX = "token"


class AuthError(Exception):
    """Authentication failure; status_code is 401 (who are you) or 403 (not allowed)."""

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code


def _rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", DEFAULT_ROUNDS))
    return DEFAULT_ROUNDS


def hash_password(password: str, rounds: int | None = None) -> str:
    """
    Hash password using bcrypt.

    Lower rounds are only meant for tests; production keeps the default.
    """
    if not password:
        raise ValidationError("password is required", "password")
    salt = bcrypt.gensalt(rounds=rounds or _rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in the record store


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify password against bcrypt hash.

    Returns False for malformed hashes instead of raising.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(store, *, username: str, password: str, role: str = "cashier") -> dict:
    """
    Create a staff account.

    Raises:
        ValidationError: blank username or unknown role
        ConflictError: username already taken
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required", "username")
    enforce_rules_user({"role": role})

    def _create():
        if store.find_one("users", username=username) is not None:
            raise ConflictError(f"Username '{username}' already exists")
        return store.insert("users", {
            "username": username,
            "password_hash": hash_password(password),
            "role": role,
        })

    user = store.run_atomic(_create)
    logger.info("Created user %s (role=%s)", username, role)
    return User.serialize(user)


def list_users(store) -> list[dict]:
    return [User.serialize(u) for u in store.list("users")]


def authenticate(store, username: str, password: str) -> dict | None:
    """
    Authenticate user with username and password.

    Returns the serialized user if credentials are valid, None otherwise.
    """
    user = store.find_one("users", username=(username or "").strip())
    if user is None:
        return None
    if not verify_password(password, user["password_hash"]):
        return None
    return User.serialize(user)


def issue_token(user: dict) -> str:
    return f"{TOKEN_PREFIX}_{user['id']}_{int(time.time() * 1000)}"


def login(store, username: str, password: str) -> dict:
    """
    Verify credentials and return {"user", "token"}.

    Raises AuthError on bad credentials.
    """
    if not username or not password:
        raise ValidationError("username and password are required")

    user = authenticate(store, username, password)
    if user is None:
        logger.info("Failed login for %s", username)
        raise AuthError("Invalid credentials")
    return {"user": user, "token": issue_token(user)}


def resolve_token(store, token: str | None) -> dict | None:
    """
    Map a till token back to its user, or None when it is malformed or the
    user no longer exists.
    """
    if not token:
        return None
    parts = token.split("_")
    if len(parts) != 3 or parts[0] != TOKEN_PREFIX:
        return None
    try:
        user_id = int(parts[1])
    except ValueError:
        return None
    user = store.get("users", user_id)
    return User.serialize(user) if user is not None else None
