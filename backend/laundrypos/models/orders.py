from __future__ import annotations

from ..extensions import db
from ..money import as_float
from ..time_utils import to_utc_z


class Order(db.Model):
    """
    Checkout document ("TRX000123").

    Totals are derived at checkout and stored; line items are immutable once
    created. Returns never touch line items, they create Return rows and move
    the order to the terminal ``returned`` status.

    STATUS: pending -> completed; pending/completed -> cancelled;
            pending/completed -> returned (return processing only)
    COD only: delivery_status (pending, in-transit, delivered),
              payment_status (unpaid, paid)
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
        db.Index("ix_orders_payment_method", "payment_method"),
    )

    id = db.Column(db.String(16), primary_key=True)
    customer_id = db.Column(db.String(16), db.ForeignKey("customers.id"), nullable=True, index=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Inputs the totals were computed from, kept for redisplay and audits
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=False, default="percentage")
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False)
    cash_amount = db.Column(db.Numeric(12, 2), nullable=True)
    card_amount = db.Column(db.Numeric(12, 2), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="completed", index=True)
    delivery_status = db.Column(db.String(16), nullable=True)
    payment_status = db.Column(db.String(16), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "customer_code": self.customer.code if self.customer else None,
            "customer_phone": self.customer.phone if self.customer else None,
            "subtotal": as_float(self.subtotal),
            "discount": as_float(self.discount),
            "tax": as_float(self.tax),
            "total": as_float(self.total),
            "tax_rate": as_float(self.tax_rate),
            "discount_type": self.discount_type,
            "discount_value": as_float(self.discount_value),
            "payment_method": self.payment_method,
            "cash_amount": as_float(self.cash_amount),
            "card_amount": as_float(self.card_amount),
            "status": self.status,
            "delivery_status": self.delivery_status,
            "payment_status": self.payment_status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """
    Order line. ``unit_rate`` and ``service`` are snapshots taken at checkout
    so refunds are priced on what was charged, not on today's rates.
    """
    __tablename__ = "order_items"

    id = db.Column(db.String(16), primary_key=True)
    order_id = db.Column(db.String(16), db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.String(32), db.ForeignKey("products.id"), nullable=False, index=True)

    service = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_rate = db.Column(db.Numeric(12, 2), nullable=True)  # NULL on rows written before snapshots
    discount = db.Column(db.Numeric(5, 2), nullable=False, default=0)  # percent, 0-100
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": product.name if product else None,
            "barcode": product.barcode if product else None,
            "category": product.category if product else None,
            "service": self.service,
            "quantity": self.quantity,
            "unit_rate": as_float(self.unit_rate),
            "discount": as_float(self.discount),
            "subtotal": as_float(self.subtotal),
        }
