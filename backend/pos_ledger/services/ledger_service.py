# Overview: Service-layer operations for the inventory ledger; append-only stock audit trail.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import InventoryTransaction, Product, LEDGER_ENTRY_TYPES
from ..results import service_operation
from ..validation import coerce_int
from .session_service import SessionContext, require_actor
"""
Inventory Ledger Invariants (authoritative)

- Append-only log of stock-affecting events. No update or delete path.
- Every entry carries the acting user, resolved from the SessionContext
  passed by the caller. No context means AuthenticationError.
- quantity_delta is a nonzero integer: negative for sales, positive for
  restocks, either sign for adjustments.
- The ledger does not check that an entry matches a stock counter change.
  Callers write the counter change and the entry in the same DB transaction.
- Reconciliation: Product.stock_quantity == SUM(quantity_delta) for the product.
  The initial stock of a product is itself recorded as a "restock" entry
  ("Initial stock"), so no separate baseline is needed.
"""


def record_entry(
    ctx: SessionContext | None,
    *,
    product_id: int,
    entry_type: str,
    quantity_delta,
    note: str | None = None,
    sale_id: int | None = None,
) -> InventoryTransaction:
    """
    Add a ledger entry to the current transaction (flush, no commit).

    Used by inventory_service and sales_service so the entry commits or rolls
    back together with the stock change it records.
    """
    user = require_actor(ctx)

    if entry_type not in LEDGER_ENTRY_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(LEDGER_ENTRY_TYPES)}")

    delta = coerce_int("quantity_delta", quantity_delta)
    if delta == 0:
        raise ValidationError("quantity_delta must be non-zero")

    if db.session.get(Product, product_id) is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

    entry = InventoryTransaction(
        product_id=product_id,
        user_id=user.id,
        type=entry_type,
        quantity_delta=delta,
        note=(note or None),
        sale_id=sale_id,
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing
    return entry


@service_operation("append ledger entry")
def append_entry(
    ctx: SessionContext | None,
    *,
    product_id: int,
    entry_type: str,
    quantity_delta,
    note: str | None = None,
) -> dict:
    """Append a single ledger entry on its own and commit it."""
    entry = record_entry(
        ctx,
        product_id=product_id,
        entry_type=entry_type,
        quantity_delta=quantity_delta,
        note=note,
    )
    db.session.commit()
    return entry.to_dict()


@service_operation("load ledger history")
def history(product_id: int, limit: int | None = None) -> list[dict]:
    """Entries for a product, newest first, capped at limit (default LEDGER_HISTORY_LIMIT)."""
    if limit is None:
        limit = current_app.config["LEDGER_HISTORY_LIMIT"]
    limit = coerce_int("limit", limit)
    if limit <= 0:
        raise ValidationError("limit must be > 0")
    limit = min(limit, current_app.config["LEDGER_HISTORY_MAX_LIMIT"])

    if db.session.get(Product, product_id) is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

    rows = (
        db.session.query(InventoryTransaction)
        .filter(InventoryTransaction.product_id == product_id)
        .order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
        .limit(limit)
        .all()
    )
    return [r.to_dict() for r in rows]


def ledger_quantity(product_id: int) -> int:
    """SUM(quantity_delta) over all ledger entries of a product."""
    q = db.session.query(
        func.coalesce(func.sum(InventoryTransaction.quantity_delta), 0)
    ).filter(InventoryTransaction.product_id == product_id)
    return int(q.scalar() or 0)


def _reconciliation_row(product: Product, ledger_qty: int) -> dict:
    drift = product.stock_quantity - ledger_qty
    if drift:
        current_app.logger.warning(
            "Stock drift on product %s (%s): counter=%s ledger=%s drift=%s",
            product.id, product.name, product.stock_quantity, ledger_qty, drift,
        )
    return {
        "product_id": product.id,
        "name": product.name,
        "stock_quantity": product.stock_quantity,
        "ledger_quantity": ledger_qty,
        "drift": drift,
    }


@service_operation("reconcile product stock")
def reconcile_product(product_id: int) -> dict:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return _reconciliation_row(product, ledger_quantity(product_id))


@service_operation("reconcile stock")
def reconcile_all(include_inactive: bool = False) -> dict:
    """Recompute stock from the ledger for every product and flag drift."""
    totals = dict(
        db.session.query(
            InventoryTransaction.product_id,
            func.sum(InventoryTransaction.quantity_delta),
        ).group_by(InventoryTransaction.product_id).all()
    )

    q = db.session.query(Product)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))

    rows = [
        _reconciliation_row(p, int(totals.get(p.id) or 0))
        for p in q.order_by(Product.name.asc(), Product.id.asc()).all()
    ]
    drifted = [r for r in rows if r["drift"]]
    return {
        "products": rows,
        "checked_count": len(rows),
        "drift_count": len(drifted),
        "consistent": not drifted,
    }
