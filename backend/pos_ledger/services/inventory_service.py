# Overview: Service-layer operations for inventory; atomic stock counter moves paired with ledger entries.

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Product
from ..results import service_operation
from ..validation import coerce_int
from .concurrency import run_with_retry
from .ledger_service import record_entry
from .session_service import SessionContext, require_actor
"""
Stock Counter Invariants (authoritative)

- stock_quantity never goes negative.
- Every counter move is ONE conditional UPDATE:
      stock_quantity = stock_quantity + delta
      WHERE id = :id AND is_active AND stock_quantity + delta >= 0
  Zero rows affected means the product is missing/inactive or the floor
  would be crossed; nothing is written. There is no read-then-write window.
- version_id is bumped on every counter move so that ORM edits holding a
  stale copy of the product fail with StaleDataError instead of silently
  overwriting the new count.
- The counter move and its ledger entry share one DB transaction.
"""


def apply_stock_delta(product_id: int, delta: int) -> int:
    """
    Move the stock counter by delta inside the current transaction.

    Returns the new stock quantity. Raises NotFoundError for a missing or
    inactive product and InsufficientStockError when the floor check fails.
    """
    stmt = (
        update(Product)
        .where(
            Product.id == product_id,
            Product.is_active.is_(True),
            Product.stock_quantity + delta >= 0,
        )
        .values(
            stock_quantity=Product.stock_quantity + delta,
            version_id=Product.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    # Reload so any copy already in the identity map sees the new count
    product = db.session.get(Product, product_id, populate_existing=True)

    if result.rowcount != 1:
        if product is None or not product.is_active:
            raise NotFoundError(
                f"Product {product_id} not found or inactive",
                details={"product_id": product_id},
            )
        raise InsufficientStockError(
            "Insufficient stock",
            details={"items": [{
                "product_id": product_id,
                "requested_quantity": -delta,
                "on_hand": product.stock_quantity,
            }]},
        )

    return product.stock_quantity


def _move_stock(ctx, *, product_id: int, delta: int, entry_type: str, note: str | None) -> dict:
    def _op():
        new_stock = apply_stock_delta(product_id, delta)
        entry = record_entry(
            ctx,
            product_id=product_id,
            entry_type=entry_type,
            quantity_delta=delta,
            note=note,
        )
        db.session.commit()
        return {
            "product_id": product_id,
            "stock_quantity": new_stock,
            "entry": entry.to_dict(),
        }

    return run_with_retry(_op, attempts=current_app.config["SALE_RETRY_ATTEMPTS"])


@service_operation("restock product")
def restock_product(ctx: SessionContext | None, product_id: int, quantity, note: str | None = None) -> dict:
    """Increase stock and append a "restock" entry in one transaction."""
    require_actor(ctx)
    quantity = coerce_int("quantity", quantity)
    if quantity <= 0:
        raise ValidationError("quantity must be > 0 for restock")

    return _move_stock(
        ctx,
        product_id=product_id,
        delta=quantity,
        entry_type="restock",
        note=note or f"Restocked {quantity} units",
    )


@service_operation("adjust stock")
def adjust_stock(ctx: SessionContext | None, product_id: int, quantity_delta, note: str | None = None) -> dict:
    """
    Manual correction (damage, shrinkage, miscount). Signed delta, floor at 0.
    """
    require_actor(ctx)
    delta = coerce_int("quantity_delta", quantity_delta)
    if delta == 0:
        raise ValidationError("quantity_delta must be non-zero for adjustment")

    return _move_stock(
        ctx,
        product_id=product_id,
        delta=delta,
        entry_type="adjustment",
        note=note or "Manual adjustment",
    )
