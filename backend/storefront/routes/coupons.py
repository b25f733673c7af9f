# backend/storefront/routes/coupons.py
"""
Coupon routes.

- POST /api/coupons/validate is public (checkout). 404 for an unknown code,
  400 for every other failed rule.
- POST /api/coupons/redeem counts one use; requires coupons:redeem.
- /api/marketing/coupons is the admin surface (coupons:view / coupons:manage).
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_policy
from ..extensions import db
from ..models import Coupon
from ..responses import fail, ok
from ..services.coupon_service import CouponService
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_int,
    validate_payload,
)

coupons_bp = Blueprint("coupons", __name__, url_prefix="/api/coupons")
marketing_coupons_bp = Blueprint("marketing_coupons", __name__, url_prefix="/api/marketing/coupons")

COUPON_POLICY = ModelValidationPolicy(
    writable_fields={
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
    },
    required_on_create={"code", "type", "value"},
)


@coupons_bp.post("/validate")
def validate_coupon_route():
    """Body: {code, subtotal (paise), zone?}."""
    payload = request.get_json(silent=True) or {}

    try:
        subtotal = coerce_int("subtotal", payload.get("subtotal", 0))
        code = payload.get("code") or ""
        zone = payload.get("zone")
        if not isinstance(code, str):
            raise ValidationError("code must be a string")
        if zone is not None and not isinstance(zone, str):
            raise ValidationError("zone must be a string")
        result = CouponService(db.session).validate(code, subtotal, zone)
    except NotFoundError as e:
        return fail(str(e), 404)
    except ValidationError as e:
        return fail(str(e), 400)

    return ok(result.to_dict())


@coupons_bp.post("/redeem")
@require_auth
@require_policy("coupons", "redeem")
def redeem_coupon_route():
    payload = request.get_json(silent=True) or {}
    code = payload.get("code")
    if not isinstance(code, str) or not code.strip():
        return fail("Coupon code is required", 400)

    try:
        coupon = CouponService(db.session).redeem(code)
    except NotFoundError as e:
        return fail(str(e), 404)
    except ValidationError as e:
        return fail(str(e), 400)

    current_app.logger.info("Coupon %s redeemed by user %s", coupon.code, g.current_user.id)
    return ok(coupon.to_dict())


@marketing_coupons_bp.get("")
@require_auth
@require_policy("coupons", "view")
def list_coupons_route():
    is_active_raw = request.args.get("is_active")
    is_active = None if not is_active_raw else is_active_raw.lower() == "true"

    result = CouponService(db.session).list_coupons(
        is_active=is_active,
        coupon_type=request.args.get("type") or None,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return ok(result["items"], pagination=result["pagination"], stats=result["stats"])


@marketing_coupons_bp.post("")
@require_auth
@require_policy("coupons", "manage")
def create_coupon_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Coupon, payload=payload, policy=COUPON_POLICY, partial=False)
        coupon = CouponService(db.session).create_coupon(patch)
    except ConflictError as e:
        return fail(str(e), 409)
    except ValidationError as e:
        return fail(str(e), 400)
    return ok(coupon.to_dict(), 201)


@marketing_coupons_bp.get("/<int:coupon_id>")
@require_auth
@require_policy("coupons", "view")
def get_coupon_route(coupon_id: int):
    try:
        coupon = CouponService(db.session).get_coupon(coupon_id)
    except NotFoundError as e:
        return fail(str(e), 404)
    return ok(coupon.to_dict())


@marketing_coupons_bp.patch("/<int:coupon_id>")
@require_auth
@require_policy("coupons", "manage")
def update_coupon_route(coupon_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Coupon, payload=payload, policy=COUPON_POLICY, partial=True)
        coupon = CouponService(db.session).update_coupon(coupon_id, patch)
    except NotFoundError as e:
        return fail(str(e), 404)
    except ConflictError as e:
        return fail(str(e), 409)
    except ValidationError as e:
        return fail(str(e), 400)
    return ok(coupon.to_dict())


@marketing_coupons_bp.delete("/<int:coupon_id>")
@require_auth
@require_policy("coupons", "manage")
def delete_coupon_route(coupon_id: int):
    try:
        CouponService(db.session).delete_coupon(coupon_id)
    except NotFoundError as e:
        return fail(str(e), 404)
    return ok(None)
