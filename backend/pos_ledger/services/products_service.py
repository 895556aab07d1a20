# backend/pos_ledger/services/products_service.py
"""
Product Repository

Reads, creates, partial updates and soft deletes of product rows.

- Barcodes are unique among ACTIVE products only.
- Products are never physically deleted (sales and ledger entries keep
  referencing them by id).
- The only ledger write here is the "Initial stock" restock entry on create,
  which is a follow-up step: its failure is logged and does not undo the
  product creation.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..errors import ConflictError, NotFoundError, PosError
from ..models import Product
from ..results import service_operation
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_product
from .concurrency import run_with_retry
from .ledger_service import record_entry
from .session_service import SessionContext

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "category", "size", "barcode", "price_cents", "cost_price_cents",
        "sale_price_cents", "is_on_sale", "stock_quantity",
    },
    required_on_create={"name", "category", "price_cents"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_CREATE_POLICY.writable_fields | {"is_active"},
)


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _get_or_404(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def _active_barcode_taken(barcode: str, exclude_product_id: int | None = None) -> bool:
    q = db.session.query(Product.id).filter(
        Product.barcode == barcode,
        Product.is_active.is_(True),
    )
    if exclude_product_id is not None:
        q = q.filter(Product.id != exclude_product_id)
    return q.first() is not None


@service_operation("list products")
def list_products(
    category: str | None = None,
    search: str | None = None,
    active_only: bool = True,
) -> list[dict]:
    """
    Products ordered by name.

    category: equality filter ("All" or empty means no filter)
    search: case-insensitive substring over name and barcode
    active_only: defaults to True
    """
    q = db.session.query(Product)

    if category and category != "All":
        q = q.filter(Product.category == category)

    if search and search.strip():
        pattern = _like_pattern(search.strip())
        q = q.filter(or_(
            Product.name.ilike(pattern, escape="\\"),
            Product.barcode.ilike(pattern, escape="\\"),
        ))

    if active_only:
        q = q.filter(Product.is_active.is_(True))

    return [p.to_dict() for p in q.order_by(Product.name.asc(), Product.id.asc()).all()]


@service_operation("load product")
def get_product(product_id: int) -> dict:
    return _get_or_404(product_id).to_dict()


@service_operation("look up barcode")
def get_product_by_barcode(barcode: str) -> dict:
    product = (
        db.session.query(Product)
        .filter(Product.barcode == (barcode or "").strip(), Product.is_active.is_(True))
        .first()
    )
    if product is None:
        raise NotFoundError(f"No active product with barcode {barcode!r}", details={"barcode": barcode})
    return product.to_dict()


@service_operation("list categories")
def list_categories() -> list[str]:
    rows = (
        db.session.query(Product.category)
        .filter(Product.is_active.is_(True))
        .distinct()
        .order_by(Product.category.asc())
        .all()
    )
    return [row.category for row in rows]


@service_operation("check barcode")
def barcode_exists(barcode: str, exclude_product_id: int | None = None) -> bool:
    return _active_barcode_taken((barcode or "").strip(), exclude_product_id)


def _record_initial_stock(ctx: SessionContext | None, product: Product) -> bool:
    """
    Follow-up to product creation. Runs in its own transaction; a failure is
    logged and leaves the already-committed product in place.
    """
    product_id = product.id
    quantity = product.stock_quantity
    try:
        record_entry(
            ctx,
            product_id=product_id,
            entry_type="restock",
            quantity_delta=quantity,
            note="Initial stock",
        )
        db.session.commit()
        return True
    except (PosError, SQLAlchemyError):
        db.session.rollback()
        current_app.logger.exception(
            "Initial stock ledger entry failed for product %s (quantity=%s); product kept",
            product_id, quantity,
        )
        return False


@service_operation("create product")
def create_product(ctx: SessionContext | None, payload: dict) -> dict:
    """
    Create a product from a raw payload.

    stock_quantity defaults to 0. When it is > 0 a "restock" ledger entry
    with note "Initial stock" follows the product insert.

    Raises:
        ValidationError: missing/invalid fields
        ConflictError: barcode already used by an active product
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
    enforce_rules_product(patch)
    patch.setdefault("stock_quantity", 0)

    barcode = patch.get("barcode")
    if barcode and _active_barcode_taken(barcode):
        raise ConflictError("Barcode already in use by an active product.", details={"barcode": barcode})

    p = Product(is_active=True, **patch)
    db.session.add(p)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("Barcode already in use by an active product.", details={"barcode": barcode}) from exc

    current_app.logger.info("Created product %s (%s)", p.id, p.name)

    if p.stock_quantity > 0:
        _record_initial_stock(ctx, p)

    return p.to_dict()


@service_operation("update product")
def update_product(product_id: int, payload: dict) -> dict:
    """
    Partial update. Last write wins against other operator edits; a sale that
    moved the counter in between causes a StaleDataError and a re-read.

    NOTE: a direct stock_quantity edit is not mirrored in the ledger. Use
    inventory_service.restock_product/adjust_stock for audited stock moves;
    reconcile_product reports the drift a direct edit leaves behind.
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    enforce_rules_product(patch)

    def _op():
        p = _get_or_404(product_id)

        barcode = patch.get("barcode", p.barcode)
        becomes_active = patch.get("is_active", p.is_active)
        if barcode and becomes_active and _active_barcode_taken(barcode, exclude_product_id=p.id):
            raise ConflictError("Barcode already in use by an active product.", details={"barcode": barcode})

        for k, v in patch.items():
            setattr(p, k, v)

        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError("Barcode already in use by an active product.", details={"barcode": barcode}) from exc
        return p

    p = run_with_retry(_op)

    if "stock_quantity" in patch:
        current_app.logger.info(
            "Direct stock edit on product %s to %s (not recorded in ledger)",
            p.id, p.stock_quantity,
        )
    return p.to_dict()


@service_operation("delete product")
def delete_product(product_id: int) -> dict:
    """
    Soft-delete a product (is_active=false). Existing sales, sale lines and
    ledger entries are untouched. Idempotent.
    """
    def _op():
        p = _get_or_404(product_id)
        if p.is_active:
            p.is_active = False
            db.session.commit()
        return p

    return run_with_retry(_op).to_dict()
