# backend/storefront/routes/shipping.py
"""
Shipping routes.

- GET /api/shipping/quote is public: the checkout page calls it with the
  destination pincode and the cart subtotal (paise).
- Rate administration requires shipping:view / shipping:manage.
"""
from flask import Blueprint, request

from ..decorators import require_auth, require_policy
from ..extensions import db
from ..models import ShippingRate
from ..responses import fail, ok
from ..services.shipping_service import ShippingService
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_int,
    validate_payload,
)

shipping_bp = Blueprint("shipping", __name__, url_prefix="/api/shipping")

SHIPPING_RATE_POLICY = ModelValidationPolicy(
    writable_fields={
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
    },
    required_on_create={"base_cost_paise"},
)


@shipping_bp.get("/quote")
def shipping_quote_route():
    """Quote shipping for ?pincode=&subtotal= (subtotal in paise, default 0)."""
    pincode = request.args.get("pincode", "")
    raw_subtotal = request.args.get("subtotal", "0")

    try:
        subtotal = coerce_int("subtotal", raw_subtotal)
        quote = ShippingService(db.session).get_quote(pincode, subtotal)
    except ValidationError as e:
        return fail(str(e), 400)
    except NotFoundError as e:
        return fail(str(e), 404)

    return ok(quote.to_dict())


@shipping_bp.get("/rates")
@require_auth
@require_policy("shipping", "view")
def list_rates_route():
    is_active_raw = request.args.get("is_active")
    is_active = None if not is_active_raw else is_active_raw.lower() == "true"

    result = ShippingService(db.session).list_rates(
        zone=request.args.get("zone") or None,
        is_active=is_active,
        search=request.args.get("search") or None,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return ok(result["items"], pagination=result["pagination"])


@shipping_bp.post("/rates")
@require_auth
@require_policy("shipping", "manage")
def create_rate_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=ShippingRate, payload=payload, policy=SHIPPING_RATE_POLICY, partial=False)
        rate = ShippingService(db.session).create_rate(patch)
    except ValidationError as e:
        return fail(str(e), 400)
    return ok(rate.to_dict(), 201)


@shipping_bp.get("/rates/<int:rate_id>")
@require_auth
@require_policy("shipping", "view")
def get_rate_route(rate_id: int):
    try:
        rate = ShippingService(db.session).get_rate(rate_id)
    except NotFoundError as e:
        return fail(str(e), 404)
    return ok(rate.to_dict())


@shipping_bp.patch("/rates/<int:rate_id>")
@require_auth
@require_policy("shipping", "manage")
def update_rate_route(rate_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=ShippingRate, payload=payload, policy=SHIPPING_RATE_POLICY, partial=True)
        rate = ShippingService(db.session).update_rate(rate_id, patch)
    except NotFoundError as e:
        return fail(str(e), 404)
    except ValidationError as e:
        return fail(str(e), 400)
    return ok(rate.to_dict())


@shipping_bp.delete("/rates/<int:rate_id>")
@require_auth
@require_policy("shipping", "manage")
def delete_rate_route(rate_id: int):
    try:
        ShippingService(db.session).delete_rate(rate_id)
    except NotFoundError as e:
        return fail(str(e), 404)
    return ok(None)
