from __future__ import annotations

from ..extensions import db
from ..money import as_float
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Laundry article with one unit rate per service tier.

    All three rates are required and numeric; the legacy single ``price``
    column is not carried. ``stock`` is optional: NULL means the article is
    not stock-tracked and neither checkout nor returns touch it.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_name", "category", "name"),
    )

    id = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False)
    barcode = db.Column(db.String(64), nullable=False, unique=True, index=True)
    description = db.Column(db.Text, nullable=True)

    iron_rate = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    wash_and_iron_rate = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    dry_clean_rate = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "barcode": self.barcode,
            "description": self.description,
            "iron_rate": as_float(self.iron_rate),
            "wash_and_iron_rate": as_float(self.wash_and_iron_rate),
            "dry_clean_rate": as_float(self.dry_clean_rate),
            "stock": self.stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Customer(db.Model):
    """Customer master data. Ids are sequential ("C00042")."""
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        db.Index("ix_customers_phone", "phone"),
    )

    id = db.Column(db.String(16), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(64), nullable=True)
    contact_name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    place = db.Column(db.String(255), nullable=True)
    emirate = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "contact_name": self.contact_name,
            "phone": self.phone,
            "email": self.email,
            "place": self.place,
            "emirate": self.emirate,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
