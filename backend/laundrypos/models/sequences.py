from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class SequenceCounter(db.Model):
    """
    Last-issued number per id prefix (TRX, C, R, RI, ITM).

    Updated only through compare-and-set in sequence_service so two callers
    can never both observe the same value as "theirs".
    """
    __tablename__ = "id_sequences"

    prefix = db.Column(db.String(16), primary_key=True)
    counter_value = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "prefix": self.prefix,
            "counter_value": self.counter_value,
            "updated_at": to_utc_z(self.updated_at),
        }
