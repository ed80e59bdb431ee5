from __future__ import annotations

from ..extensions import db
from .base import RecordMixin


class Category(RecordMixin, db.Model):
    """Product category; products refer to it by name."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)


class Product(RecordMixin, db.Model):
    """
    Sellable item with three price tiers.

    status is derived from stock (low_stock at or below the threshold) except
    when a manager has set it to inactive.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    sku = db.Column(db.String(64), nullable=False, unique=True)

    # Informal link: category name is authoritative, category_id is optional
    category_id = db.Column(db.Integer, nullable=True)
    category = db.Column(db.String(100), nullable=False)

    # Price tiers
    counter_price = db.Column(db.Numeric(10, 2), nullable=False)
    wholesale_price = db.Column(db.Numeric(10, 2), nullable=False)
    custom_price = db.Column(db.Numeric(10, 2), nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=False)  # piece, kg, dozen, box, loaf
    gst_rate = db.Column(db.Numeric(5, 2), nullable=False)  # percent
    image_url = db.Column(db.String(500), nullable=True)
    barcode = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")  # active, low_stock, inactive

    created_at = db.Column(db.DateTime, nullable=False)
