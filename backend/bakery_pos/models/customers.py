from __future__ import annotations

from ..extensions import db
from .base import RecordMixin


class Customer(RecordMixin, db.Model):
    """
    Customer master data.

    Exactly one row carries is_default: the walk-in customer used when a sale
    is rung up without picking anyone.
    """
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    gst_number = db.Column(db.String(32), nullable=True)
    customer_type = db.Column(db.String(16), nullable=False, default="walk_in")  # walk_in, regular, wholesale

    # Informational only; settlement never touches it
    balance = db.Column(db.Numeric(10, 2), nullable=False)

    is_default = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False)
