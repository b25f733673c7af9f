# Overview: Catalog reads for the storefront and product/category administration.

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..models import Category, Product
from ..validation import ConflictError, NotFoundError, ValidationError
from .inventory_service import DEFAULT_LOW_STOCK_THRESHOLD, derive_stock_status, effective_threshold
from .pagination import paginate

logger = logging.getLogger(__name__)

# stock_quantity is settable on create only; afterwards it moves through InventoryService
PRODUCT_CREATE_FIELDS = {
    "sku", "slug", "name", "description", "price_paise", "sale_price_paise",
    "status", "is_featured", "category_id", "stock_quantity", "low_stock_threshold",
}
PRODUCT_MUTABLE_FIELDS = PRODUCT_CREATE_FIELDS - {"stock_quantity"}


class ProductService:
    def __init__(self, session, *, default_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD):
        self.session = session
        self.default_threshold = default_threshold

    def list_products(
        self,
        *,
        published_only: bool = True,
        category_slug: str | None = None,
        search: str | None = None,
        featured: bool | None = None,
        in_stock_only: bool = False,
        page: int | None = None,
        per_page: int | None = None,
    ) -> dict:
        q = self.session.query(Product)
        if published_only:
            q = q.filter(Product.status == "published")
        if category_slug:
            q = q.join(Category).filter(Category.slug == category_slug)
        if search:
            term = f"%{search.strip()}%"
            q = q.filter(or_(
                Product.name.ilike(term),
                Product.sku.ilike(term),
                Product.description.ilike(term),
            ))
        if featured is not None:
            q = q.filter(Product.is_featured.is_(featured))
        if in_stock_only:
            q = q.filter(Product.stock_status != "outofstock")

        q = q.order_by(Product.name.asc(), Product.id.asc())
        rows, pagination = paginate(q, page, per_page)
        return {"items": [p.to_dict() for p in rows], "pagination": pagination}

    def get_product(self, product_id: int, *, published_only: bool = False) -> Product:
        product = self.session.get(Product, product_id)
        if product is None or (published_only and product.status != "published"):
            raise NotFoundError("Product not found")
        return product

    def get_by_slug(self, slug: str, *, published_only: bool = True) -> Product:
        product = self.session.query(Product).filter(Product.slug == slug).first()
        if product is None or (published_only and product.status != "published"):
            raise NotFoundError("Product not found")
        return product

    def _ensure_unique(self, patch: dict, product_id: int | None = None) -> None:
        for key in ("sku", "slug"):
            if key not in patch:
                continue
            other = self.session.query(Product).filter(getattr(Product, key) == patch[key]).first()
            if other is not None and other.id != product_id:
                raise ConflictError(f"A product with this {key} already exists")

    def _ensure_category(self, patch: dict) -> None:
        category_id = patch.get("category_id")
        if category_id is not None and self.session.get(Category, category_id) is None:
            raise ValidationError("category_id does not exist")

    def create_product(self, patch: dict) -> Product:
        self._ensure_unique(patch)
        self._ensure_category(patch)
        product = Product(**{k: v for k, v in patch.items() if k in PRODUCT_CREATE_FIELDS})
        product.stock_quantity = product.stock_quantity or 0
        product.stock_status = derive_stock_status(
            product.stock_quantity, effective_threshold(product, self.default_threshold)
        )
        self.session.add(product)
        self.session.commit()
        logger.info("Created product %s (%s)", product.id, product.sku)
        return product

    def update_product(self, product_id: int, patch: dict) -> Product:
        product = self.get_product(product_id)
        if "stock_quantity" in patch:
            raise ValidationError("stock_quantity can only be changed through inventory adjustments")
        self._ensure_unique(patch, product_id=product.id)
        self._ensure_category(patch)
        for key, value in patch.items():
            if key in PRODUCT_MUTABLE_FIELDS:
                setattr(product, key, value)
        # a threshold change can move the derived status
        product.stock_status = derive_stock_status(
            product.stock_quantity or 0, effective_threshold(product, self.default_threshold)
        )
        self.session.commit()
        return product

    def delete_product(self, product_id: int) -> None:
        product = self.get_product(product_id)
        if product.inventory_transactions.first() is not None:
            # ledger rows are immutable, so archive instead of deleting history
            raise ConflictError("Product has inventory history; archive it instead")
        self.session.delete(product)
        self.session.commit()
        logger.info("Deleted product %s", product_id)


class CategoryService:
    def __init__(self, session):
        self.session = session

    def list_categories(self, *, active_only: bool = True) -> list[dict]:
        q = self.session.query(Category)
        if active_only:
            q = q.filter(Category.is_active.is_(True))
        return [c.to_dict() for c in q.order_by(Category.name.asc()).all()]

    def create_category(self, patch: dict) -> Category:
        if self.session.query(Category).filter(Category.slug == patch["slug"]).first() is not None:
            raise ConflictError("A category with this slug already exists")
        category = Category(**patch)
        self.session.add(category)
        self.session.commit()
        return category
