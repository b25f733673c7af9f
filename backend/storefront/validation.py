from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .time_utils import parse_iso_datetime

# Rs 99,99,999.99; keeps amounts well inside 32-bit integer columns
MAX_AMOUNT_PAISE = 999_999_999


class ValidationError(ValueError):
    """400-level input problem or failed business rule."""


class NotFoundError(LookupError):
    """404-level: the referenced row (or rate, or code) does not exist."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU or coupon code)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    writable_fields: what clients are allowed to set
    required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    return {c.key: c for c in model.__mapper__.columns}


def coerce_int(name: str, value: Any) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and exponents."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    raise ValidationError(f"{name} must be an integer")


def _coerce_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0"):
        return value.strip().lower() in ("true", "1")
    if isinstance(value, int):
        return bool(value)
    raise ValidationError(f"{name} must be a boolean")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        return _coerce_bool(col.key, value)

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, JSON):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValidationError(f"{col.key} must be a list of strings")
        return [v.strip() for v in value if v.strip()]

    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validate and normalize incoming JSON against the model's column metadata
    (nullable, type, String length) and the policy allowlist.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)

    Returns a cleaned patch dict containing only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}
    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and isinstance(val, str) and val == "":
            if not col.nullable:
                raise ValidationError(f"{k} cannot be blank")
            val = None

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_amount(patch: dict, key: str, *, allow_zero: bool = True) -> None:
    value = patch.get(key)
    if value is None:
        return
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(f"{key} must be {'>= 0' if allow_zero else '> 0'}")
    if value > MAX_AMOUNT_PAISE:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT_PAISE}")


def enforce_rules_product(patch: dict) -> None:
    from .models.catalog import PRODUCT_STATUSES

    _check_amount(patch, "price_paise")
    _check_amount(patch, "sale_price_paise")
    if patch.get("status") is not None and patch["status"] not in PRODUCT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(PRODUCT_STATUSES)}")
    if patch.get("stock_quantity") is not None and patch["stock_quantity"] < 0:
        raise ValidationError("stock_quantity must be >= 0")
    if patch.get("low_stock_threshold") is not None and patch["low_stock_threshold"] < 0:
        raise ValidationError("low_stock_threshold must be >= 0")


def enforce_rules_shipping_rate(patch: dict, existing=None) -> None:
    """
    Rules over the merged state (existing row + patch) so a PATCH cannot
    leave a rate targeting nothing, or both a pincode and a prefix.
    """
    def merged(key):
        if key in patch:
            return patch[key]
        return getattr(existing, key, None) if existing is not None else None

    pincode = merged("pincode")
    prefix = merged("pincode_prefix")
    if pincode and prefix:
        raise ValidationError("Specify either a full pincode or a prefix, not both.")
    if not pincode and not prefix:
        raise ValidationError("Shipping rate must target a pincode or a pincode prefix.")

    _check_amount(patch, "base_cost_paise")
    _check_amount(patch, "surcharge_paise")
    _check_amount(patch, "free_shipping_threshold_paise")

    low = merged("estimated_delivery_min")
    high = merged("estimated_delivery_max")
    for key, days in (("estimated_delivery_min", low), ("estimated_delivery_max", high)):
        if days is not None and days < 0:
            raise ValidationError(f"{key} must be >= 0")
    if low is not None and high is not None and low > high:
        raise ValidationError("estimated_delivery_min cannot exceed estimated_delivery_max")


def enforce_rules_coupon(patch: dict, existing=None) -> None:
    from .models.marketing import COUPON_TYPES

    def merged(key):
        if key in patch:
            return patch[key]
        return getattr(existing, key, None) if existing is not None else None

    coupon_type = merged("type")
    value = merged("value")

    if coupon_type not in COUPON_TYPES:
        raise ValidationError("Type must be percentage or fixed_amount")
    if value is None:
        raise ValidationError("value is required")
    if coupon_type == "percentage" and not 0 <= value <= 100:
        raise ValidationError("Percentage value must be between 0 and 100")
    if coupon_type == "fixed_amount" and value <= 0:
        raise ValidationError("Fixed amount value must be greater than 0")
    if coupon_type == "fixed_amount" and value > MAX_AMOUNT_PAISE:
        raise ValidationError(f"value cannot exceed {MAX_AMOUNT_PAISE}")

    _check_amount(patch, "minimum_amount_paise")
    _check_amount(patch, "maximum_discount_paise")

    usage_limit = merged("usage_limit")
    if usage_limit is not None:
        if usage_limit <= 0:
            raise ValidationError("usage_limit must be > 0")
        used = merged("used_count") or 0
        if used > usage_limit:
            raise ValidationError("usage_limit cannot be below the current used_count")

    valid_from = merged("valid_from")
    valid_until = merged("valid_until")
    if valid_from is not None and valid_until is not None and valid_until < valid_from:
        raise ValidationError("valid_until must be after valid_from")
