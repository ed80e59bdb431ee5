from __future__ import annotations

from ..extensions import db
from .base import RecordMixin


class User(RecordMixin, db.Model):
    """
    Staff account used to sign in to the till.

    Roles are a flat tag (admin | cashier); there is no permission matrix.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}
    __serialize_exclude__ = ("password_hash",)

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default="cashier")
    created_at = db.Column(db.DateTime, nullable=False)
