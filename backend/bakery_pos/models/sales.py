from __future__ import annotations

from ..extensions import db
from .base import RecordMixin


class Order(RecordMixin, db.Model):
    """
    Settled (or partially paid) sale.

    Orders own their items and payments; both are written only by the
    settlement engine. The only later mutation is the status field.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number derived from id (e.g. "ORD000042"); set in the same transaction as the insert
    order_number = db.Column(db.String(32), nullable=True, unique=True)

    # Soft reference: the name snapshot survives customer deletion
    customer_id = db.Column(db.Integer, nullable=True)
    customer_name = db.Column(db.String(200), nullable=False)

    subtotal = db.Column(db.Numeric(10, 2), nullable=False)
    gst_amount = db.Column(db.Numeric(10, 2), nullable=False)
    total = db.Column(db.Numeric(10, 2), nullable=False)

    payment_method = db.Column(db.String(16), nullable=False)  # cash, card, wallet, split
    payment_status = db.Column(db.String(16), nullable=False, default="pending")  # pending, completed, failed
    status = db.Column(db.String(16), nullable=False, default="processing", index=True)  # processing, completed, cancelled

    # Client-generated key; a resubmitted checkout returns the existing order
    idempotency_key = db.Column(db.String(64), nullable=True, unique=True)

    created_at = db.Column(db.DateTime, nullable=False, index=True)


class OrderItem(RecordMixin, db.Model):
    """Line of an order; prices and names are snapshots taken at cart-add time."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    # Soft reference: products may be deleted after the sale
    product_id = db.Column(db.Integer, nullable=True, index=True)
    product_name = db.Column(db.String(200), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit = db.Column(db.String(32), nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    price_type = db.Column(db.String(16), nullable=False)  # counter, wholesale, custom
    gst_rate = db.Column(db.Numeric(5, 2), nullable=False)
    total = db.Column(db.Numeric(10, 2), nullable=False)

    # adjusted: stock decremented; skipped: product reference was stale
    stock_status = db.Column(db.String(16), nullable=False, default="adjusted")


class Payment(RecordMixin, db.Model):
    """
    One payment leg of an order. Split payments are several rows for one
    order.
    """
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    method = db.Column(db.String(16), nullable=False)  # cash, card, wallet
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    transaction_id = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="completed")  # completed, failed

    created_at = db.Column(db.DateTime, nullable=False)
