# Overview: Stock adjustments, the inventory ledger, and low-stock alerts.

"""
Inventory invariants (authoritative)

Stock model:
- Product.stock_quantity is the mutable current level; InventoryTransaction
  is the append-only ledger of every change to it.
- stock_quantity never goes negative: new = max(0, current + delta).
- stock_status is derived, never chosen:
    outofstock  if quantity <= 0
    lowstock    if quantity <= threshold
    instock     otherwise
  threshold = product.low_stock_threshold, else config LOW_STOCK_THRESHOLD (5).

Atomicity:
- The product update and the ledger insert are flushed in one session and
  committed together; any failure rolls both back.
- The product row is read with SELECT ... FOR UPDATE so concurrent
  adjustments of one product serialize on the database row lock.
- Version conflicts and lock errors are retried by run_with_retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import func, or_

from ..models import InventoryTransaction, Product
from ..models.inventory import TRANSACTION_TYPES
from ..time_utils import utcnow
from ..validation import NotFoundError, ValidationError
from .concurrency import lock_for_update, run_with_retry
from .pagination import paginate

logger = logging.getLogger(__name__)

DEFAULT_LOW_STOCK_THRESHOLD = 5
DEFAULT_ADJUST_REASON = "Manual stock adjustment"
QUICK_RESTOCK_HEADROOM = 10
ALERT_ACTIVITY_WINDOW = timedelta(days=7)


def effective_threshold(product: Product, default: int = DEFAULT_LOW_STOCK_THRESHOLD) -> int:
    if product.low_stock_threshold is not None:
        return product.low_stock_threshold
    return default


def derive_stock_status(quantity: int, threshold: int) -> str:
    if quantity <= 0:
        return "outofstock"
    if quantity <= threshold:
        return "lowstock"
    return "instock"


@dataclass(frozen=True)
class StockAdjustment:
    product: Product
    transaction: InventoryTransaction
    previous_quantity: int
    previous_status: str

    def to_dict(self) -> dict:
        return {
            "product": self.product.to_dict(),
            "transaction": self.transaction.to_dict(),
            "previous_quantity": self.previous_quantity,
            "previous_status": self.previous_status,
        }


class InventoryService:
    def __init__(self, session, *, default_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD):
        self.session = session
        self.default_threshold = default_threshold

    def threshold_for(self, product: Product) -> int:
        return effective_threshold(product, self.default_threshold)

    def refresh_stock_status(self, product: Product) -> str:
        product.stock_status = derive_stock_status(product.stock_quantity or 0, self.threshold_for(product))
        return product.stock_status

    # -- writes -------------------------------------------------------------

    def _apply_adjustment(
        self,
        *,
        product_id: int,
        delta: int,
        tx_type: str,
        reason: str,
        notes: str | None,
        user_id: int | None,
    ) -> StockAdjustment:
        query = self.session.query(Product).filter(Product.id == product_id)
        product = lock_for_update(query).first()
        if product is None:
            raise NotFoundError("Product not found")

        previous_quantity = product.stock_quantity or 0
        previous_status = product.stock_status

        new_quantity = max(0, previous_quantity + delta)
        product.stock_quantity = new_quantity
        new_status = self.refresh_stock_status(product)

        tx = InventoryTransaction(
            product_id=product.id,
            type=tx_type,
            quantity=delta,
            stock_after=new_quantity,
            reason=reason,
            notes=notes,
            created_by_user_id=user_id,
        )
        self.session.add(tx)
        self.session.flush()

        if new_status != previous_status and new_status != "instock":
            logger.warning("Product %s (%s) is now %s at %d units", product.id, product.sku, new_status, new_quantity)
        return StockAdjustment(
            product=product,
            transaction=tx,
            previous_quantity=previous_quantity,
            previous_status=previous_status,
        )

    def adjust_stock(
        self,
        *,
        product_id: int,
        delta: int,
        reason: str | None = None,
        notes: str | None = None,
        tx_type: str | None = None,
        user_id: int | None = None,
    ) -> StockAdjustment:
        """
        Apply a signed stock delta and record it in the ledger, atomically.

        tx_type defaults to 'restock' for positive deltas and 'adjustment'
        otherwise.
        """
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise ValidationError("adjustment must be an integer")
        if delta == 0:
            raise ValidationError("adjustment must be non-zero")
        if tx_type is None:
            tx_type = "restock" if delta > 0 else "adjustment"
        if tx_type not in TRANSACTION_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(TRANSACTION_TYPES)}")

        def _op():
            result = self._apply_adjustment(
                product_id=product_id,
                delta=delta,
                tx_type=tx_type,
                reason=(reason or "").strip() or DEFAULT_ADJUST_REASON,
                notes=notes,
                user_id=user_id,
            )
            self.session.commit()
            return result

        result = run_with_retry(self.session, _op)
        logger.info(
            "Stock %s for product %s: %d -> %d (%+d)",
            tx_type,
            product_id,
            result.previous_quantity,
            result.product.stock_quantity,
            delta,
        )
        return result

    def update_thresholds(self, product_ids: list[int], threshold: int) -> int:
        if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
            raise ValidationError("newThreshold must be a non-negative integer")
        if not product_ids:
            raise ValidationError("productIds must not be empty")

        def _op():
            products = self.session.query(Product).filter(Product.id.in_(product_ids)).all()
            for product in products:
                product.low_stock_threshold = threshold
                self.refresh_stock_status(product)
            self.session.commit()
            return len(products)

        return run_with_retry(self.session, _op)

    def quick_restock(self, product_ids: list[int], *, user_id: int | None = None) -> list[StockAdjustment]:
        """Bring each product up to threshold + 10 units through the normal adjuster."""
        if not product_ids:
            raise ValidationError("productIds must not be empty")

        results = []
        products = self.session.query(Product).filter(Product.id.in_(product_ids)).all()
        for product in products:
            target = self.threshold_for(product) + QUICK_RESTOCK_HEADROOM
            delta = target - (product.stock_quantity or 0)
            if delta <= 0:
                continue
            results.append(self.adjust_stock(
                product_id=product.id,
                delta=delta,
                reason="Quick restock via alerts",
                notes="Automated restock from inventory alerts",
                tx_type="restock",
                user_id=user_id,
            ))
        return results

    # -- reads --------------------------------------------------------------

    def overview(
        self,
        *,
        low_stock_only: bool = False,
        out_of_stock_only: bool = False,
        product_id: int | None = None,
    ) -> dict:
        q = self.session.query(Product).filter(Product.status == "published")
        if product_id is not None:
            q = q.filter(Product.id == product_id)
        if low_stock_only:
            q = q.filter(Product.stock_status.in_(("lowstock", "outofstock")))
        if out_of_stock_only:
            q = q.filter(Product.stock_quantity <= 0)
        products = q.order_by(Product.stock_quantity.asc(), Product.name.asc()).all()

        counts = dict(
            self.session.query(Product.stock_status, func.count(Product.id))
            .filter(Product.status == "published")
            .group_by(Product.stock_status)
            .all()
        )
        return {
            "products": [p.to_dict() for p in products],
            "stats": {
                "in_stock": counts.get("instock", 0),
                "low_stock": counts.get("lowstock", 0),
                "out_of_stock": counts.get("outofstock", 0),
                "total": sum(counts.values()),
            },
        }

    def list_transactions(
        self,
        *,
        product_id: int | None = None,
        tx_type: str | None = None,
        from_date=None,
        to_date=None,
        page: int | None = None,
        per_page: int | None = None,
    ) -> dict:
        if tx_type is not None and tx_type not in TRANSACTION_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(TRANSACTION_TYPES)}")

        criteria = []
        if product_id is not None:
            criteria.append(InventoryTransaction.product_id == product_id)
        if tx_type:
            criteria.append(InventoryTransaction.type == tx_type)
        if from_date is not None:
            criteria.append(InventoryTransaction.created_at >= from_date)
        if to_date is not None:
            criteria.append(InventoryTransaction.created_at <= to_date)

        q = (
            self.session.query(InventoryTransaction)
            .filter(*criteria)
            .order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
        )
        rows, pagination = paginate(q, page, per_page, default_per_page=50)

        summary = (
            self.session.query(
                InventoryTransaction.type,
                func.coalesce(func.sum(InventoryTransaction.quantity), 0),
                func.count(InventoryTransaction.id),
            )
            .filter(*criteria)
            .group_by(InventoryTransaction.type)
            .order_by(InventoryTransaction.type)
            .all()
        )
        return {
            "transactions": [r.to_dict() for r in rows],
            "summary": [
                {"type": t, "total_quantity": int(total), "transaction_count": int(count)}
                for t, total, count in summary
            ],
            "pagination": pagination,
        }

    def alerts(self, *, severity: str | None = None) -> dict:
        if severity not in (None, "", "all", "critical", "warning"):
            raise ValidationError("severity must be critical, warning or all")

        threshold = func.coalesce(Product.low_stock_threshold, self.default_threshold)
        products = (
            self.session.query(Product)
            .filter(
                Product.status == "published",
                or_(
                    Product.stock_status.in_(("lowstock", "outofstock")),
                    Product.stock_quantity <= threshold,
                ),
            )
            .order_by(Product.stock_quantity.asc(), Product.name.asc())
            .all()
        )

        now = utcnow()
        alerts = []
        for product in products:
            quantity = product.stock_quantity or 0
            limit = self.threshold_for(product)
            if quantity <= 0:
                level, message = "critical", "Out of stock"
            else:
                level, message = "warning", f"Low stock: {quantity} remaining"
            alerts.append({
                "product_id": product.id,
                "product_name": product.name,
                "product_sku": product.sku,
                "product_slug": product.slug,
                "current_stock": quantity,
                "threshold": limit,
                "severity": level,
                "message": message,
                "price_paise": product.price_paise,
            })

        counts = {
            "critical": sum(1 for a in alerts if a["severity"] == "critical"),
            "warning": sum(1 for a in alerts if a["severity"] == "warning"),
            "total": len(alerts),
        }
        if severity in ("critical", "warning"):
            alerts = [a for a in alerts if a["severity"] == severity]

        recent = []
        if products:
            recent = (
                self.session.query(InventoryTransaction)
                .filter(
                    InventoryTransaction.product_id.in_([p.id for p in products]),
                    InventoryTransaction.created_at >= now - ALERT_ACTIVITY_WINDOW,
                )
                .order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
                .limit(10)
                .all()
            )

        return {
            "alerts": alerts,
            "counts": counts,
            "recent_activity": [tx.to_dict() for tx in recent],
        }
