# backend/storefront/routes/products.py
"""
Catalog routes.

Reads are public and only show published products; a caller whose role
has products:view also sees drafts and archived items when asking with
?include_unpublished=true. Writes require products:create/edit/delete.
"""
from flask import Blueprint, current_app, request

from ..decorators import current_role, load_current_user, require_auth, require_policy
from ..extensions import db
from ..models import Category, Product
from ..policy import is_allowed
from ..responses import fail, ok
from ..services.products_service import CategoryService, ProductService
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")
categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku",
        "slug",
        "name",
        "description",
        "price_paise",
        "sale_price_paise",
        "status",
        "is_featured",
        "category_id",
        "stock_quantity",
        "low_stock_threshold",
    },
    required_on_create={"sku", "slug", "name", "price_paise"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "slug", "description", "is_active"},
    required_on_create={"name", "slug"},
)


def _product_service() -> ProductService:
    return ProductService(db.session, default_threshold=current_app.config["LOW_STOCK_THRESHOLD"])


def _published_only() -> bool:
    if request.args.get("include_unpublished", "false").lower() != "true":
        return True
    load_current_user()
    return not is_allowed(current_role(), "products", "view")


@products_bp.get("")
def list_products_route():
    """
    Query params: category, q, featured, in_stock, page, per_page (max 100).
    """
    featured_raw = request.args.get("featured")
    result = _product_service().list_products(
        published_only=_published_only(),
        category_slug=request.args.get("category") or None,
        search=request.args.get("q") or None,
        featured=None if not featured_raw else featured_raw.lower() == "true",
        in_stock_only=request.args.get("in_stock", "false").lower() == "true",
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return ok(result["items"], pagination=result["pagination"])


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = _product_service().get_product(product_id, published_only=_published_only())
    except NotFoundError as e:
        return fail(str(e), 404)
    return ok(product.to_dict())


@products_bp.get("/slug/<slug>")
def get_product_by_slug_route(slug: str):
    try:
        product = _product_service().get_by_slug(slug, published_only=_published_only())
    except NotFoundError as e:
        return fail(str(e), 404)
    return ok(product.to_dict())


@products_bp.post("")
@require_auth
@require_policy("products", "create")
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        product = _product_service().create_product(patch)
    except ConflictError as e:
        return fail(str(e), 409)
    except ValidationError as e:
        return fail(str(e), 400)
    return ok(product.to_dict(), 201)


@products_bp.patch("/<int:product_id>")
@require_auth
@require_policy("products", "edit")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        product = _product_service().update_product(product_id, patch)
    except NotFoundError as e:
        return fail(str(e), 404)
    except ConflictError as e:
        return fail(str(e), 409)
    except ValidationError as e:
        return fail(str(e), 400)
    return ok(product.to_dict())


@products_bp.delete("/<int:product_id>")
@require_auth
@require_policy("products", "delete")
def delete_product_route(product_id: int):
    try:
        _product_service().delete_product(product_id)
    except NotFoundError as e:
        return fail(str(e), 404)
    except ConflictError as e:
        return fail(str(e), 409)
    return ok(None)


@categories_bp.get("")
def list_categories_route():
    return ok(CategoryService(db.session).list_categories())


@categories_bp.post("")
@require_auth
@require_policy("categories", "create")
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        category = CategoryService(db.session).create_category(patch)
    except ConflictError as e:
        return fail(str(e), 409)
    except ValidationError as e:
        return fail(str(e), 400)
    return ok(category.to_dict(), 201)
