# Overview: Service-layer operations for reporting; read-only aggregates derived from sales and stock.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import ValidationError
from ..models import Sale, SaleLine, Product, PAYMENT_METHODS
from ..results import service_operation
from ..time_utils import REPORT_WINDOWS, start_of_day, to_utc_z, utcnow, window_start
from .sales_service import query_sales
"""
Reporting Semantics (authoritative)

- Read-only: nothing here adds, changes or flushes a row.
- No materialized rollups. Every report scans the rows returned by the store
  for its window, so cost is linear in sales/lines in the window.
- Windows are inclusive of their start: created_at >= start.
- Money is integer cents; averages round half-up to the nearest cent.
"""

UNCATEGORIZED = "Uncategorized"


def _average_cents(total_cents: int, count: int) -> int:
    if count <= 0:
        return 0
    # nearest-cent rounding (half-up)
    return (total_cents + (count // 2)) // count


def low_stock_threshold() -> int:
    return current_app.config["LOW_STOCK_THRESHOLD"]


def is_low_stock(quantity: int, threshold: int | None = None) -> bool:
    threshold = low_stock_threshold() if threshold is None else threshold
    return 0 < quantity <= threshold


@service_operation("load sales analytics")
def sales_analytics(date_range: str | None = "month") -> dict:
    """
    Revenue, order count, payment split, top products and category revenue
    for a symbolic window: today | week | month | year (default month).
    """
    date_range = date_range or "month"
    if date_range not in REPORT_WINDOWS:
        raise ValidationError(f"date_range must be one of: {', '.join(REPORT_WINDOWS)}")

    start = window_start(date_range)

    sales = (
        db.session.query(Sale.total_cents, Sale.payment_method)
        .filter(Sale.created_at >= start)
        .all()
    )

    total_sales_cents = sum(s.total_cents for s in sales)
    total_orders = len(sales)

    by_method = {method: 0 for method in PAYMENT_METHODS}
    for s in sales:
        by_method[s.payment_method] = by_method.get(s.payment_method, 0) + s.total_cents

    lines = (
        db.session.query(
            SaleLine.product_id,
            SaleLine.product_name,
            SaleLine.quantity,
            SaleLine.line_total_cents,
            Product.category,
        )
        .join(Sale, Sale.id == SaleLine.sale_id)
        .outerjoin(Product, Product.id == SaleLine.product_id)
        .filter(Sale.created_at >= start)
        .all()
    )

    product_performance: dict[int, dict] = {}
    category_performance: dict[str, int] = {}
    for line in lines:
        category = line.category or UNCATEGORIZED
        perf = product_performance.setdefault(line.product_id, {
            "product_id": line.product_id,
            "name": line.product_name,
            "category": category,
            "quantity": 0,
            "revenue_cents": 0,
        })
        perf["quantity"] += line.quantity
        perf["revenue_cents"] += line.line_total_cents
        category_performance[category] = category_performance.get(category, 0) + line.line_total_cents

    top_products = sorted(
        product_performance.values(),
        key=lambda p: (-p["revenue_cents"], p["name"]),
    )[: current_app.config["TOP_PRODUCTS_LIMIT"]]

    return {
        "date_range": date_range,
        "start": to_utc_z(start),
        "total_sales_cents": total_sales_cents,
        "total_orders": total_orders,
        "avg_order_cents": _average_cents(total_sales_cents, total_orders),
        "cash_sales_cents": by_method.get("Cash", 0),
        "transfer_sales_cents": by_method.get("Transfer", 0),
        "sales_by_payment_method": by_method,
        "top_products": top_products,
        "category_performance": category_performance,
    }


@service_operation("load inventory summary")
def inventory_summary() -> dict:
    """Unit count, valuation at price and at cost, low/out-of-stock counts over active products."""
    threshold = low_stock_threshold()

    products = (
        db.session.query(Product)
        .filter(Product.is_active.is_(True))
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )

    low_stock_items = [
        {"product_id": p.id, "name": p.name, "stock_quantity": p.stock_quantity}
        for p in products
        if is_low_stock(p.stock_quantity, threshold)
    ]

    return {
        "total_inventory": sum(p.stock_quantity for p in products),
        "total_stock_value_cents": sum(p.stock_quantity * p.price_cents for p in products),
        "total_cost_value_cents": sum(p.stock_quantity * (p.cost_price_cents or 0) for p in products),
        "low_stock_threshold": threshold,
        "low_stock_count": len(low_stock_items),
        "out_of_stock_count": sum(1 for p in products if p.stock_quantity == 0),
        "low_stock_items": low_stock_items,
    }


@service_operation("load today's sales")
def today_sales() -> list[dict]:
    """Sales since midnight UTC, newest first, with lines and cashier name."""
    return [s.to_dict(include_lines=True) for s in query_sales(start=start_of_day(utcnow()))]
