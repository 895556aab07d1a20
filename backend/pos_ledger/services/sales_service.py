"""
Sales Service - cart to durable sale

WHY: A checkout must move sale, lines, stock counters and ledger together.
All of it runs in ONE database transaction: either every row is written or
none is.

Order of work inside the transaction:
1. resolve the acting user from the SessionContext
2. validate the cart and compute totals server-side in integer cents
3. insert the sale row (its id is needed by lines and ledger notes)
4. insert all sale lines in one batch
5. per product: conditional decrement with floor check, then a "sale"
   ledger entry referencing the sale

A failed floor check aborts the whole sale (InsufficientStockError) and
nothing is applied. Lock/serialization errors roll back and retry the whole
unit a bounded number of times; a retry starts from a clean transaction so it
cannot double-decrement.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import joinedload, selectinload
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ConflictError, InsufficientStockError, NotFoundError, SaleCreationFailed, ValidationError
from ..models import Sale, SaleLine, Product
from ..results import service_operation
from ..time_utils import parse_iso_datetime, utcnow
from ..validation import validate_cart, validate_payment_method
from .concurrency import run_with_retry
from .inventory_service import apply_stock_delta
from .ledger_service import record_entry
from .session_service import SessionContext, require_actor


_inflight_lock = threading.Lock()
_inflight_checkouts: set[str] = set()


@contextmanager
def checkout_guard(key: str):
    """
    Reject a second checkout from the same session while one is in flight.

    Process-local guard against double submission. It does not coordinate
    different sessions; the conditional decrement does that.
    """
    with _inflight_lock:
        if key in _inflight_checkouts:
            raise ConflictError("A checkout is already in progress for this session")
        _inflight_checkouts.add(key)
    try:
        yield
    finally:
        with _inflight_lock:
            _inflight_checkouts.discard(key)


def _guard_key(ctx: SessionContext) -> str:
    if ctx.session is not None:
        return f"session:{ctx.session.id}"
    return f"user:{ctx.user.id}"


def _merge_quantities(items: list[dict]) -> dict[int, int]:
    totals: dict[int, int] = {}
    for item in items:
        totals[item["product_id"]] = totals.get(item["product_id"], 0) + item["quantity"]
    return totals


def _load_products(product_ids) -> dict[int, Product]:
    products = {}
    for product_id in product_ids:
        product = db.session.get(Product, product_id)
        if product is None or not product.is_active:
            raise NotFoundError(
                f"Product {product_id} not found or inactive",
                details={"product_id": product_id},
            )
        products[product_id] = product
    return products


def _validate_on_hand(products: dict[int, Product], totals: dict[int, int]) -> None:
    insufficient = []
    for product_id, qty in totals.items():
        on_hand = products[product_id].stock_quantity
        if on_hand < qty:
            insufficient.append({
                "product_id": product_id,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })

    if insufficient:
        raise InsufficientStockError(
            "Insufficient stock to complete sale",
            details={"items": insufficient},
        )


def _create_sale_once(ctx: SessionContext, items: list[dict], payment_method: str) -> Sale:
    cashier_id = ctx.user.id
    totals = _merge_quantities(items)
    products = _load_products(totals.keys())

    # Early, friendly report of every short product. The conditional
    # decrement below is what actually enforces the floor.
    _validate_on_hand(products, totals)

    line_totals = [item["quantity"] * item["unit_price_cents"] for item in items]
    now = utcnow()

    stage = "sale"
    try:
        sale = Sale(
            cashier_id=cashier_id,
            total_cents=sum(line_totals),
            payment_method=payment_method,
            created_at=now,
        )
        db.session.add(sale)
        db.session.flush()

        stage = "lines"
        db.session.add_all([
            SaleLine(
                sale_id=sale.id,
                product_id=item["product_id"],
                product_name=products[item["product_id"]].name,
                quantity=item["quantity"],
                unit_price_cents=item["unit_price_cents"],
                line_total_cents=line_total,
                created_at=now,
            )
            for item, line_total in zip(items, line_totals)
        ])
        db.session.flush()

        stage = "stock"
        for product_id, qty in totals.items():
            apply_stock_delta(product_id, -qty)
            record_entry(
                ctx,
                product_id=product_id,
                entry_type="sale",
                quantity_delta=-qty,
                note=f"Sale {sale.id}",
                sale_id=sale.id,
            )

        db.session.commit()
    except (OperationalError, StaleDataError):
        # Retryable: handled by run_with_retry
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Sale transaction failed at stage %s", stage)
        raise SaleCreationFailed("Sale could not be recorded", details={"stage": stage}) from exc

    return sale


@service_operation("create sale")
def create_sale(ctx: SessionContext | None, cart, payment_method) -> dict:
    """
    Convert a cart into one sale, its lines, stock decrements and "sale"
    ledger entries, all-or-nothing.

    cart: [{product_id, quantity, unit_price_cents}], prices in integer cents
    payment_method: "Cash" | "Transfer"

    Returns the sale dict with its lines.
    """
    require_actor(ctx)
    items = validate_cart(cart)
    payment_method = validate_payment_method(payment_method)

    with checkout_guard(_guard_key(ctx)):
        sale = run_with_retry(
            lambda: _create_sale_once(ctx, items, payment_method),
            attempts=current_app.config["SALE_RETRY_ATTEMPTS"],
        )

    current_app.logger.info(
        "Sale %s recorded by user %s: %s lines, total_cents=%s, %s",
        sale.id, sale.cashier_id, len(items), sale.total_cents, sale.payment_method,
    )
    return sale.to_dict(include_lines=True)


def _sales_query():
    return db.session.query(Sale).options(
        joinedload(Sale.cashier),
        selectinload(Sale.lines),
    )


@service_operation("load sale")
def get_sale(sale_id: int) -> dict:
    """Sale with its lines and the cashier's display name."""
    sale = _sales_query().filter(Sale.id == sale_id).first()
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale.to_dict(include_lines=True)


def query_sales(
    start: datetime | None = None,
    end: datetime | None = None,
    payment_method: str | None = None,
) -> list[Sale]:
    q = _sales_query()
    if start is not None:
        q = q.filter(Sale.created_at >= start)
    if end is not None:
        q = q.filter(Sale.created_at <= end)
    if payment_method:
        q = q.filter(Sale.payment_method == validate_payment_method(payment_method))
    return q.order_by(Sale.created_at.desc(), Sale.id.desc()).all()


@service_operation("list sales")
def list_sales(
    start_date: str | None = None,
    end_date: str | None = None,
    payment_method: str | None = None,
) -> list[dict]:
    """Sales newest first, each with lines and cashier name. Dates are ISO-8601, inclusive."""
    try:
        start = parse_iso_datetime(start_date)
        end = parse_iso_datetime(end_date)
    except ValueError:
        raise ValidationError("start_date and end_date must be ISO-8601 datetimes")

    return [s.to_dict(include_lines=True) for s in query_sales(start, end, payment_method)]
