# backend/storefront/routes/inventory.py
"""
Inventory routes.

SECURITY: every route requires authentication.
- reads require inventory:view
- stock changes (adjustments, alert actions) require inventory:adjust

Dates for the transaction history accept ISO-8601 (date or datetime);
a date-only to_date covers the whole day.
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_policy
from ..extensions import db
from ..responses import fail, ok
from ..services.inventory_service import InventoryService
from ..time_utils import end_of_day, parse_iso_datetime
from ..validation import NotFoundError, ValidationError, coerce_int

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

ADJUST_FIELDS = {"product_id", "adjustment", "reason", "notes", "type"}
ALERT_ACTIONS = ("updateThreshold", "restock")


def _inventory_service() -> InventoryService:
    return InventoryService(db.session, default_threshold=current_app.config["LOW_STOCK_THRESHOLD"])


def _flag(name: str) -> bool:
    return request.args.get(name, "false").lower() == "true"


def _optional_text(payload: dict, key: str, max_len: int | None = None) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    value = value.strip()
    if max_len is not None and len(value) > max_len:
        raise ValidationError(f"{key} exceeds max length {max_len}")
    return value or None


@inventory_bp.get("")
@require_auth
@require_policy("inventory", "view")
def inventory_overview_route():
    """Published products with stock levels, plus counts per stock status."""
    data = _inventory_service().overview(
        low_stock_only=_flag("low_stock_only"),
        out_of_stock_only=_flag("out_of_stock_only"),
        product_id=request.args.get("product_id", type=int),
    )
    return ok(data)


@inventory_bp.post("")
@require_auth
@require_policy("inventory", "adjust")
def adjust_inventory_route():
    """
    Apply a signed stock adjustment.

    Body: {product_id, adjustment, reason?, notes?, type?}
    Stock is clamped at 0 and stock_status is recomputed; the product row
    and the ledger row are written in one transaction.
    """
    payload = request.get_json(silent=True) or {}

    try:
        unknown = set(payload) - ADJUST_FIELDS
        if unknown:
            raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")
        if payload.get("product_id") is None or payload.get("adjustment") is None:
            raise ValidationError("Product ID and adjustment amount are required")

        result = _inventory_service().adjust_stock(
            product_id=coerce_int("product_id", payload["product_id"]),
            delta=coerce_int("adjustment", payload["adjustment"]),
            reason=_optional_text(payload, "reason", 255),
            notes=_optional_text(payload, "notes"),
            tx_type=_optional_text(payload, "type"),
            user_id=g.current_user.id,
        )
    except NotFoundError as e:
        return fail(str(e), 404)
    except ValidationError as e:
        return fail(str(e), 400)

    product = result.product
    return ok(
        result.to_dict(),
        message=f"Stock updated for {product.name}. New stock: {product.stock_quantity}",
    )


@inventory_bp.get("/transactions")
@require_auth
@require_policy("inventory", "view")
def inventory_transactions_route():
    try:
        from_date = parse_iso_datetime(request.args.get("from_date"))
        to_date = parse_iso_datetime(request.args.get("to_date"))
    except ValueError:
        return fail("from_date/to_date must be ISO-8601 dates", 400)

    try:
        data = _inventory_service().list_transactions(
            product_id=request.args.get("product_id", type=int),
            tx_type=request.args.get("type") or None,
            from_date=from_date,
            to_date=end_of_day(to_date) if to_date else None,
            page=request.args.get("page", type=int),
            per_page=request.args.get("limit", type=int),
        )
    except ValidationError as e:
        return fail(str(e), 400)
    return ok(data)


@inventory_bp.get("/alerts")
@require_auth
@require_policy("inventory", "view")
def inventory_alerts_route():
    try:
        data = _inventory_service().alerts(severity=request.args.get("severity"))
    except ValidationError as e:
        return fail(str(e), 400)
    return ok(data)


@inventory_bp.post("/alerts")
@require_auth
@require_policy("inventory", "adjust")
def inventory_alert_action_route():
    """
    Body: {action: "updateThreshold", productIds, newThreshold}
       or {action: "restock", productIds}
    """
    payload = request.get_json(silent=True) or {}
    action = payload.get("action")
    product_ids = payload.get("productIds") or []

    if action not in ALERT_ACTIONS:
        return fail("Invalid action or missing parameters", 400)

    service = _inventory_service()
    try:
        if not isinstance(product_ids, list):
            raise ValidationError("productIds must be a list")
        product_ids = [coerce_int("productIds", pid) for pid in product_ids]

        if action == "updateThreshold":
            if payload.get("newThreshold") is None:
                raise ValidationError("Invalid action or missing parameters")
            threshold = coerce_int("newThreshold", payload["newThreshold"])
            updated = service.update_thresholds(product_ids, threshold)
            return ok(
                {"updated_count": updated},
                message=f"Updated threshold for {updated} products",
            )

        results = service.quick_restock(product_ids, user_id=g.current_user.id)
    except ValidationError as e:
        return fail(str(e), 400)

    return ok(
        [r.product.to_dict() for r in results],
        message=f"Restocked {len(results)} products",
    )
