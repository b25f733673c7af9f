# Overview: Shipping rate administration and pincode quotes.

"""
Shipping quotes by pincode.

Resolution order for a destination pincode:
1. an active rate whose pincode equals it exactly (newest update wins);
2. otherwise the active rate with the LONGEST pincode_prefix the pincode
   starts with (ties: newest update, then highest id);
3. otherwise there is no rate: NotFoundError.

Cost: 0 when the rate has a free-shipping threshold and the subtotal
reaches it, else base_cost + surcharge (never below 0). All amounts paise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import or_

from ..models import ShippingRate
from ..validation import NotFoundError, ValidationError, enforce_rules_shipping_rate
from .pagination import paginate

logger = logging.getLogger(__name__)

SHIPPING_RATE_MUTABLE_FIELDS = {
    "name",
    "pincode",
    "pincode_prefix",
    "zone",
    "base_cost_paise",
    "surcharge_paise",
    "free_shipping_threshold_paise",
    "estimated_delivery_min",
    "estimated_delivery_max",
    "is_active",
    "notes",
}


@dataclass(frozen=True)
class ShippingQuote:
    rate: ShippingRate
    subtotal_paise: int
    shipping_cost_paise: int
    is_free: bool

    def to_dict(self) -> dict:
        return {
            "rateId": self.rate.id,
            "name": self.rate.name,
            "zone": self.rate.zone,
            "pincode": self.rate.pincode,
            "pincodePrefix": self.rate.pincode_prefix,
            "shippingCost": self.shipping_cost_paise,
            "isFree": self.is_free,
            "freeShippingThreshold": self.rate.free_shipping_threshold_paise,
            "estimatedDeliveryMin": self.rate.estimated_delivery_min,
            "estimatedDeliveryMax": self.rate.estimated_delivery_max,
        }


def normalize_pincode(value: str | None) -> str:
    return (value or "").strip().upper()


def build_quote(rate: ShippingRate, subtotal_paise: int) -> ShippingQuote:
    threshold = rate.free_shipping_threshold_paise
    is_free = threshold is not None and threshold >= 0 and subtotal_paise >= threshold
    cost = 0 if is_free else max(0, (rate.base_cost_paise or 0) + (rate.surcharge_paise or 0))
    return ShippingQuote(rate=rate, subtotal_paise=subtotal_paise, shipping_cost_paise=cost, is_free=is_free)


class ShippingService:
    def __init__(self, session):
        self.session = session

    # -- quotes -------------------------------------------------------------

    def find_rate_for_pincode(self, pincode: str) -> ShippingRate | None:
        normalized = normalize_pincode(pincode)
        if not normalized:
            return None

        exact = (
            self.session.query(ShippingRate)
            .filter(ShippingRate.pincode == normalized, ShippingRate.is_active.is_(True))
            .order_by(ShippingRate.updated_at.desc(), ShippingRate.id.desc())
            .first()
        )
        if exact is not None:
            return exact

        candidates = (
            self.session.query(ShippingRate)
            .filter(ShippingRate.pincode_prefix.isnot(None), ShippingRate.is_active.is_(True))
            .order_by(ShippingRate.updated_at.desc(), ShippingRate.id.desc())
            .all()
        )
        best = None
        for rate in candidates:
            if not normalized.startswith(rate.pincode_prefix):
                continue
            # candidates are newest-first, so only a strictly longer prefix replaces
            if best is None or len(rate.pincode_prefix) > len(best.pincode_prefix):
                best = rate
        return best

    def get_quote(self, pincode: str, subtotal_paise: int) -> ShippingQuote:
        if not normalize_pincode(pincode):
            raise ValidationError("pincode query parameter is required")
        if subtotal_paise is None or subtotal_paise < 0:
            raise ValidationError("subtotal must be a non-negative amount")

        rate = self.find_rate_for_pincode(pincode)
        if rate is None:
            logger.info("No shipping rate for pincode %s", normalize_pincode(pincode))
            raise NotFoundError("No shipping rate configured for this pincode")
        return build_quote(rate, subtotal_paise)

    # -- administration -----------------------------------------------------

    def list_rates(
        self,
        *,
        zone: str | None = None,
        is_active: bool | None = None,
        search: str | None = None,
        page: int | None = None,
        per_page: int | None = None,
    ) -> dict:
        q = self.session.query(ShippingRate)
        if zone:
            q = q.filter(ShippingRate.zone == zone)
        if is_active is not None:
            q = q.filter(ShippingRate.is_active.is_(is_active))
        if search:
            term = f"%{search.strip()}%"
            q = q.filter(or_(
                ShippingRate.name.ilike(term),
                ShippingRate.zone.ilike(term),
                ShippingRate.pincode.ilike(term),
                ShippingRate.pincode_prefix.ilike(term),
            ))
        q = q.order_by(ShippingRate.updated_at.desc(), ShippingRate.id.desc())
        rows, pagination = paginate(q, page, per_page)
        return {"items": [r.to_dict() for r in rows], "pagination": pagination}

    def get_rate(self, rate_id: int) -> ShippingRate:
        rate = self.session.get(ShippingRate, rate_id)
        if rate is None:
            raise NotFoundError("Shipping rate not found")
        return rate

    def create_rate(self, patch: dict) -> ShippingRate:
        patch = self._normalize_targets(patch)
        enforce_rules_shipping_rate(patch)
        rate = ShippingRate(**{k: v for k, v in patch.items() if k in SHIPPING_RATE_MUTABLE_FIELDS})
        if rate.surcharge_paise is None:
            rate.surcharge_paise = 0
        self.session.add(rate)
        self.session.commit()
        logger.info("Created shipping rate %s for %s", rate.id, rate.pincode or f"{rate.pincode_prefix}*")
        return rate

    def update_rate(self, rate_id: int, patch: dict) -> ShippingRate:
        rate = self.get_rate(rate_id)
        patch = self._normalize_targets(patch)
        enforce_rules_shipping_rate(patch, existing=rate)
        for key, value in patch.items():
            if key in SHIPPING_RATE_MUTABLE_FIELDS:
                setattr(rate, key, value)
        self.session.commit()
        return rate

    def delete_rate(self, rate_id: int) -> None:
        rate = self.get_rate(rate_id)
        self.session.delete(rate)
        self.session.commit()
        logger.info("Deleted shipping rate %s", rate_id)

    @staticmethod
    def _normalize_targets(patch: dict) -> dict:
        patch = dict(patch)
        for key in ("pincode", "pincode_prefix"):
            if key in patch and patch[key] is not None:
                patch[key] = normalize_pincode(patch[key]) or None
        return patch
