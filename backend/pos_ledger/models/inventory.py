from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

PRODUCT_CATEGORIES = ("Shirts", "Blazers", "Jeans", "Trousers", "Shoes", "Accessories")

# Signed quantity_delta: negative for sales, positive for restocks, either for adjustments
LEDGER_ENTRY_TYPES = ("sale", "restock", "adjustment")


class Product(db.Model):
    """
    Product master data.

    STOCK DESIGN DECISION:
    stock_quantity is a redundant counter kept for fast reads. The
    inventory_transactions ledger is the audit trail it is reconciled against
    (see ledger_service.reconcile_product). The counter is only ever moved by
    single conditional UPDATE statements in inventory_service, or by direct
    operator edits through products_service.update_product.

    BARCODES:
    Unique among active products only. Soft-deleted products keep their stale
    barcode, so the uniqueness index is partial on is_active.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        db.Index(
            "uq_products_active_barcode",
            "barcode",
            unique=True,
            sqlite_where=db.text("is_active = 1"),
            postgresql_where=db.text("is_active"),
        ),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_category_active", "category", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(32), nullable=False)
    size = db.Column(db.String(32), nullable=True)
    barcode = db.Column(db.String(64), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)
    cost_price_cents = db.Column(db.Integer, nullable=True)
    sale_price_cents = db.Column(db.Integer, nullable=True)
    is_on_sale = db.Column(db.Boolean, nullable=False, default=False)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "size": self.size,
            "barcode": self.barcode,
            "price_cents": self.price_cents,
            "cost_price_cents": self.cost_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "is_on_sale": self.is_on_sale,
            "stock_quantity": self.stock_quantity,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryTransaction(db.Model):
    """
    Inventory ledger entry. Append-only: no update or delete path exists.

    References products, users and sales by id only; nothing cascades.
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.CheckConstraint("quantity_delta <> 0", name="ck_inventory_transactions_nonzero"),
        db.Index("ix_inventory_transactions_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # sale | restock | adjustment
    type = db.Column(db.String(32), nullable=False, index=True)

    quantity_delta = db.Column(db.Integer, nullable=False)

    note = db.Column(db.String(255), nullable=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    user = db.relationship("User")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "user_id": self.user_id,
            "user_name": self.user.display_name if self.user else None,
            "type": self.type,
            "quantity_delta": self.quantity_delta,
            "note": self.note,
            "sale_id": self.sale_id,
            "created_at": to_utc_z(self.created_at),
        }
