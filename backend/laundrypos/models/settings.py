from __future__ import annotations

from ..extensions import db
from ..money import as_float
from ..time_utils import to_utc_z


class POSSettings(db.Model):
    """Shop-wide settings. Exactly one row (id=1)."""
    __tablename__ = "settings"

    id = db.Column(db.Integer, primary_key=True)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    currency = db.Column(db.String(8), nullable=False, default="AED")
    business_name = db.Column(db.String(255), nullable=False, default="")
    business_address = db.Column(db.String(255), nullable=True)
    business_phone = db.Column(db.String(64), nullable=True)
    barcode_scanner_enabled = db.Column(db.Boolean, nullable=False, default=True)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "tax_rate": as_float(self.tax_rate),
            "currency": self.currency,
            "business_name": self.business_name,
            "business_address": self.business_address,
            "business_phone": self.business_phone,
            "barcode_scanner_enabled": self.barcode_scanner_enabled,
            "updated_at": to_utc_z(self.updated_at),
        }
