from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class ShippingRate(db.Model):
    """
    Shipping charge for a destination.

    A rate targets either one exact pincode or every pincode starting with
    pincode_prefix, never both. At quote time an exact match beats any
    prefix match, and among prefixes the longest one wins.
    """
    __tablename__ = "shipping_rates"
    __table_args__ = (
        db.Index("ix_shipping_rates_pincode_active", "pincode", "is_active"),
        db.Index("ix_shipping_rates_prefix_active", "pincode_prefix", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=True)

    pincode = db.Column(db.String(16), nullable=True)
    pincode_prefix = db.Column(db.String(16), nullable=True)
    zone = db.Column(db.String(64), nullable=True, index=True)

    base_cost_paise = db.Column(db.Integer, nullable=False, default=0)
    surcharge_paise = db.Column(db.Integer, nullable=False, default=0)
    free_shipping_threshold_paise = db.Column(db.Integer, nullable=True)

    estimated_delivery_min = db.Column(db.Integer, nullable=True)
    estimated_delivery_max = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        target = self.pincode or f"{self.pincode_prefix}*"
        return f"<ShippingRate id={self.id} target={target!r} zone={self.zone!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "pincode": self.pincode,
            "pincode_prefix": self.pincode_prefix,
            "zone": self.zone,
            "base_cost_paise": self.base_cost_paise,
            "surcharge_paise": self.surcharge_paise,
            "free_shipping_threshold_paise": self.free_shipping_threshold_paise,
            "estimated_delivery_min": self.estimated_delivery_min,
            "estimated_delivery_max": self.estimated_delivery_max,
            "is_active": self.is_active,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
