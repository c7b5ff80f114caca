from __future__ import annotations

from ..extensions import db
from ..money import as_float
from ..time_utils import to_utc_z


class Return(db.Model):
    """
    Return document ("R00001") against one order.

    Written once by return processing and never updated. ``idempotency_key``
    is the optional client token that makes a retried request return the
    stored document instead of writing a second one.
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.Index("ix_returns_created_at", "created_at"),
    )

    id = db.Column(db.String(16), primary_key=True)
    order_id = db.Column(db.String(16), db.ForeignKey("orders.id"), nullable=False, index=True)
    reason = db.Column(db.Text, nullable=False, default="")
    refund_amount = db.Column(db.Numeric(12, 2), nullable=False)
    is_complete = db.Column(db.Boolean, nullable=False, default=False)
    idempotency_key = db.Column(db.String(64), nullable=True, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("returns", lazy=True))
    items = db.relationship(
        "ReturnItem",
        backref="return_doc",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ReturnItem.id",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        order = self.order
        data = {
            "id": self.id,
            "order_id": self.order_id,
            "reason": self.reason,
            "refund_amount": as_float(self.refund_amount),
            "is_complete": self.is_complete,
            "created_at": to_utc_z(self.created_at),
            "order_total": as_float(order.total) if order else None,
            "customer_name": order.customer.name if order and order.customer else None,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class ReturnItem(db.Model):
    """Returned quantity of one product, priced from the original order line."""
    __tablename__ = "return_items"

    id = db.Column(db.String(16), primary_key=True)
    return_id = db.Column(db.String(16), db.ForeignKey("returns.id"), nullable=False, index=True)
    product_id = db.Column(db.String(32), db.ForeignKey("products.id"), nullable=False, index=True)
    order_item_id = db.Column(db.String(16), db.ForeignKey("order_items.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    refund_amount = db.Column(db.Numeric(12, 2), nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.id,
            "return_id": self.return_id,
            "product_id": self.product_id,
            "order_item_id": self.order_item_id,
            "product_name": product.name if product else None,
            "barcode": product.barcode if product else None,
            "quantity": self.quantity,
            "refund_amount": as_float(self.refund_amount),
        }
