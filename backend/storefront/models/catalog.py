from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

PRODUCT_STATUSES = ("draft", "published", "archived")
STOCK_STATUSES = ("instock", "lowstock", "outofstock")


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    slug = db.Column(db.String(128), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Sellable catalog item.

    STOCK: stock_quantity and stock_status are the mutable current-state
    fields. stock_status is derived (instock/lowstock/outofstock) from the
    quantity and the effective low-stock threshold and must only be written
    by the inventory service, which also appends an InventoryTransaction
    for every change.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_status_stock", "status", "stock_status"),
        db.Index("ix_products_category_status", "category_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    slug = db.Column(db.String(255), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Paise; the storefront formats rupees for display
    price_paise = db.Column(db.Integer, nullable=False, default=0)
    sale_price_paise = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    is_featured = db.Column(db.Boolean, nullable=False, default=False)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    stock_status = db.Column(db.String(16), nullable=False, default="outofstock")
    # NULL means "use LOW_STOCK_THRESHOLD from config"
    low_stock_threshold = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock={self.stock_quantity} {self.stock_status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "price_paise": self.price_paise,
            "sale_price_paise": self.sale_price_paise,
            "status": self.status,
            "is_featured": self.is_featured,
            "category_id": self.category_id,
            "stock_quantity": self.stock_quantity,
            "stock_status": self.stock_status,
            "low_stock_threshold": self.low_stock_threshold,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
