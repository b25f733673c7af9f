from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

COUPON_TYPES = ("percentage", "fixed_amount")


class Coupon(db.Model):
    """
    Discount code.

    value is a whole percent (0-100) for percentage coupons and paise for
    fixed_amount coupons. Fractional percents (12.5) are not representable
    and are rejected at the API; use a fixed_amount coupon instead.
    code is stored uppercase so lookups are case-insensitive. used_count
    never exceeds usage_limit when a limit is set; redemption increments it
    with a guarded UPDATE.
    """
    __tablename__ = "coupons"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)

    type = db.Column(db.String(16), nullable=False)
    value = db.Column(db.Integer, nullable=False)

    minimum_amount_paise = db.Column(db.Integer, nullable=True)
    maximum_discount_paise = db.Column(db.Integer, nullable=True)

    usage_limit = db.Column(db.Integer, nullable=True)
    used_count = db.Column(db.Integer, nullable=False, default=0)

    # JSON array of zone names; NULL or [] means every zone
    applies_to_zones = db.Column(db.JSON, nullable=True)
    free_shipping = db.Column(db.Boolean, nullable=False, default=False)

    valid_from = db.Column(db.DateTime(timezone=True), nullable=True)
    valid_until = db.Column(db.DateTime(timezone=True), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Coupon id={self.id} code={self.code!r} type={self.type} value={self.value}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "type": self.type,
            "value": self.value,
            "minimum_amount_paise": self.minimum_amount_paise,
            "maximum_discount_paise": self.maximum_discount_paise,
            "usage_limit": self.usage_limit,
            "used_count": self.used_count,
            "applies_to_zones": self.applies_to_zones,
            "free_shipping": self.free_shipping,
            "valid_from": to_utc_z(self.valid_from),
            "valid_until": to_utc_z(self.valid_until),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
