# Overview: Coupon validation, redemption and administration.

"""
Coupon validation.

Checks run in a fixed order and the first failure wins:
  code present -> code exists (NotFoundError) -> active and inside
  [valid_from, valid_until] -> usage limit not exhausted -> subtotal meets
  minimum -> zone allowed.

Discount (paise):
- percentage: subtotal * value / 100, rounded half-up, capped at
  maximum_discount_paise when set
- fixed_amount: min(value, subtotal)
The result is always clamped into [0, subtotal]. free_shipping is reported
independently of the discount.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy import func, or_, update

from ..models import Coupon
from ..time_utils import as_utc_naive, utcnow
from ..validation import ConflictError, NotFoundError, ValidationError, enforce_rules_coupon
from .pagination import paginate

logger = logging.getLogger(__name__)

COUPON_MUTABLE_FIELDS = {
    "code",
    "description",
    "type",
    "value",
    "minimum_amount_paise",
    "maximum_discount_paise",
    "usage_limit",
    "applies_to_zones",
    "free_shipping",
    "valid_from",
    "valid_until",
    "is_active",
}


@dataclass(frozen=True)
class CouponValidation:
    coupon: Coupon
    discount_paise: int
    free_shipping: bool
    message: str

    def to_dict(self) -> dict:
        c = self.coupon
        return {
            "couponId": c.id,
            "code": c.code,
            "type": c.type,
            "value": c.value,
            "discountAmount": self.discount_paise,
            "freeShipping": self.free_shipping,
            "minimumAmount": c.minimum_amount_paise,
            "maximumDiscount": c.maximum_discount_paise,
            "usageLimit": c.usage_limit,
            "usedCount": c.used_count,
            "appliesToZones": c.applies_to_zones,
            "message": self.message,
        }


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def compute_discount(coupon: Coupon, subtotal_paise: int) -> int:
    if coupon.type == "percentage":
        discount = (subtotal_paise * coupon.value + 50) // 100
        if coupon.maximum_discount_paise is not None:
            discount = min(discount, coupon.maximum_discount_paise)
    elif coupon.type == "fixed_amount":
        discount = min(coupon.value, subtotal_paise)
    else:
        discount = 0
    return max(0, min(discount, subtotal_paise))


class CouponService:
    def __init__(self, session, *, clock: Callable = utcnow):
        self.session = session
        self.clock = clock

    def find_by_code(self, code: str) -> Coupon | None:
        normalized = normalize_code(code)
        if not normalized:
            return None
        return self.session.query(Coupon).filter(Coupon.code == normalized).first()

    def _check_active(self, coupon: Coupon) -> None:
        if not coupon.is_active:
            raise ValidationError("Coupon is inactive")
        now = self.clock()
        valid_from = as_utc_naive(coupon.valid_from)
        valid_until = as_utc_naive(coupon.valid_until)
        if valid_from is not None and valid_from > now:
            raise ValidationError("Coupon is not yet active")
        if valid_until is not None and valid_until < now:
            raise ValidationError("Coupon has expired")

    @staticmethod
    def _check_usage(coupon: Coupon) -> None:
        if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
            raise ValidationError("Coupon usage limit reached")

    def validate(self, code: str, subtotal_paise: int, zone: str | None = None) -> CouponValidation:
        if not normalize_code(code):
            raise ValidationError("Coupon code is required")
        if subtotal_paise is None or subtotal_paise <= 0:
            raise ValidationError("Subtotal must be greater than zero")

        coupon = self.find_by_code(code)
        if coupon is None:
            raise NotFoundError("Coupon code is invalid")

        self._check_active(coupon)
        self._check_usage(coupon)

        if coupon.minimum_amount_paise and subtotal_paise < coupon.minimum_amount_paise:
            raise ValidationError(
                f"Order subtotal must be at least {coupon.minimum_amount_paise} to use this coupon"
            )

        zones = [z.lower() for z in (coupon.applies_to_zones or []) if z]
        if zones and (not zone or zone.strip().lower() not in zones):
            raise ValidationError("Coupon does not apply to the selected shipping zone")

        discount = compute_discount(coupon, subtotal_paise)
        message = (
            "Coupon applied with free shipping" if coupon.free_shipping else "Coupon applied successfully"
        )
        return CouponValidation(
            coupon=coupon,
            discount_paise=discount,
            free_shipping=bool(coupon.free_shipping),
            message=message,
        )

    def redeem(self, code: str) -> Coupon:
        """
        Count one use of the coupon.

        The increment is a single guarded UPDATE so two concurrent
        redemptions of the last remaining use cannot both succeed.
        """
        coupon = self.find_by_code(code)
        if coupon is None:
            raise NotFoundError("Coupon code is invalid")
        self._check_active(coupon)

        result = self.session.execute(
            update(Coupon)
            .where(
                Coupon.id == coupon.id,
                or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit),
            )
            .values(used_count=Coupon.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.session.rollback()
            raise ValidationError("Coupon usage limit reached")

        self.session.commit()
        self.session.refresh(coupon)
        logger.info("Coupon %s redeemed (%s/%s)", coupon.code, coupon.used_count, coupon.usage_limit or "-")
        return coupon

    # -- administration -----------------------------------------------------

    def list_coupons(
        self,
        *,
        is_active: bool | None = None,
        coupon_type: str | None = None,
        page: int | None = None,
        per_page: int | None = None,
    ) -> dict:
        q = self.session.query(Coupon)
        if is_active is not None:
            q = q.filter(Coupon.is_active.is_(is_active))
        if coupon_type:
            q = q.filter(Coupon.type == coupon_type)
        q = q.order_by(Coupon.created_at.desc(), Coupon.id.desc())
        rows, pagination = paginate(q, page, per_page)
        return {
            "items": [c.to_dict() for c in rows],
            "pagination": pagination,
            "stats": self.stats(),
        }

    def stats(self) -> dict:
        row = self.session.query(
            func.count(Coupon.id).label("total"),
            func.coalesce(func.sum(Coupon.used_count), 0).label("usage"),
        ).one()
        total = int(row.total or 0)
        usage = int(row.usage or 0)

        def _count(*criteria) -> int:
            return self.session.query(func.count(Coupon.id)).filter(*criteria).scalar() or 0

        return {
            "total_coupons": total,
            "active_coupons": _count(Coupon.is_active.is_(True)),
            "percentage_coupons": _count(Coupon.type == "percentage"),
            "fixed_amount_coupons": _count(Coupon.type == "fixed_amount"),
            "total_usage": usage,
            "avg_usage": round(usage / total, 2) if total else 0,
        }

    def get_coupon(self, coupon_id: int) -> Coupon:
        coupon = self.session.get(Coupon, coupon_id)
        if coupon is None:
            raise NotFoundError("Coupon not found")
        return coupon

    def create_coupon(self, patch: dict) -> Coupon:
        patch = dict(patch)
        patch["code"] = normalize_code(patch.get("code"))
        if not patch["code"]:
            raise ValidationError("Coupon code is required")
        enforce_rules_coupon(patch)
        if self.find_by_code(patch["code"]) is not None:
            raise ConflictError("Coupon code already exists")

        coupon = Coupon(**{k: v for k, v in patch.items() if k in COUPON_MUTABLE_FIELDS})
        if coupon.valid_from is None:
            coupon.valid_from = self.clock()
        coupon.used_count = 0
        self.session.add(coupon)
        self.session.commit()
        logger.info("Created coupon %s", coupon.code)
        return coupon

    def update_coupon(self, coupon_id: int, patch: dict) -> Coupon:
        coupon = self.get_coupon(coupon_id)
        patch = dict(patch)
        if "code" in patch:
            patch["code"] = normalize_code(patch["code"])
            if not patch["code"]:
                raise ValidationError("Coupon code is required")
            other = self.find_by_code(patch["code"])
            if other is not None and other.id != coupon.id:
                raise ConflictError("Coupon code already exists")
        enforce_rules_coupon(patch, existing=coupon)
        for key, value in patch.items():
            if key in COUPON_MUTABLE_FIELDS:
                setattr(coupon, key, value)
        self.session.commit()
        return coupon

    def delete_coupon(self, coupon_id: int) -> None:
        coupon = self.get_coupon(coupon_id)
        self.session.delete(coupon)
        self.session.commit()
        logger.info("Deleted coupon %s", coupon.code)
