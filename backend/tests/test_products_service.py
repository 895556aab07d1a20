"""Product repository: listing, lookups, create with initial stock, partial updates, soft delete."""

import pytest
from sqlalchemy.exc import OperationalError

from pos_ledger.extensions import db
from pos_ledger.errors import RemoteStoreError
from pos_ledger.models import InventoryTransaction, Product
from pos_ledger.services import products_service, ledger_service


def _ledger_rows(product_id):
    return db.session.query(InventoryTransaction).filter_by(product_id=product_id).all()


class TestListProducts:
    def test_ordered_by_name_and_active_only_by_default(self, make_product):
        make_product("Zebra Tee")
        make_product("Alpha Blazer", category="Blazers")
        hidden = make_product("Middle Jeans", category="Jeans")
        products_service.delete_product(hidden.id)

        result = products_service.list_products()

        assert result.success
        assert [p["name"] for p in result.data] == ["Alpha Blazer", "Zebra Tee"]

        everything = products_service.list_products(active_only=False)
        assert [p["name"] for p in everything.data] == ["Alpha Blazer", "Middle Jeans", "Zebra Tee"]

    def test_category_filter(self, make_product):
        make_product("Oxford Shirt", category="Shirts")
        make_product("Chelsea Boot", category="Shoes")

        result = products_service.list_products(category="Shoes")
        assert [p["name"] for p in result.data] == ["Chelsea Boot"]

        # "All" behaves like no filter
        assert len(products_service.list_products(category="All").data) == 2

    def test_search_matches_name_or_barcode_case_insensitive(self, make_product):
        make_product("Slim Fit JEANS", category="Jeans", barcode="111222")
        make_product("Linen Shirt", barcode="999000")

        by_name = products_service.list_products(search="jeans")
        by_barcode = products_service.list_products(search="9990")

        assert [p["name"] for p in by_name.data] == ["Slim Fit JEANS"]
        assert [p["name"] for p in by_barcode.data] == ["Linen Shirt"]

    def test_search_treats_wildcards_literally(self, make_product):
        make_product("100% Cotton Tee")
        make_product("Wool Tee")

        result = products_service.list_products(search="100%")
        assert [p["name"] for p in result.data] == ["100% Cotton Tee"]


class TestLookups:
    def test_get_missing_product_is_not_found(self, db_session):
        result = products_service.get_product(12345)

        assert not result.success
        assert result.error_type == "not_found"
        assert result.to_dict() == {
            "success": False,
            "error": "Product 12345 not found",
            "error_type": "not_found",
            "details": {"product_id": 12345},
        }

    def test_barcode_lookup_ignores_soft_deleted(self, make_product):
        old = make_product("Old Belt", category="Accessories", barcode="BC-1")
        products_service.delete_product(old.id)

        assert not products_service.get_product_by_barcode("BC-1").success

        new = make_product("New Belt", category="Accessories", barcode="BC-1")
        found = products_service.get_product_by_barcode("BC-1")
        assert found.success
        assert found.data["id"] == new.id

    def test_categories_are_distinct_active_categories(self, make_product):
        make_product(category="Shirts")
        make_product(category="Shirts")
        gone = make_product(category="Shoes")
        products_service.delete_product(gone.id)

        assert products_service.list_categories().data == ["Shirts"]

    def test_barcode_exists_only_for_active_products(self, make_product):
        p = make_product(barcode="777")

        assert products_service.barcode_exists("777").data is True
        assert products_service.barcode_exists("777", exclude_product_id=p.id).data is False

        products_service.delete_product(p.id)
        assert products_service.barcode_exists("777").data is False


class TestCreateProduct:
    def test_requires_name_category_price(self, admin_ctx):
        result = products_service.create_product(admin_ctx, {"name": "No price", "category": "Shirts"})

        assert not result.success
        assert result.error_type == "validation_error"
        assert "price_cents" in result.error

    def test_rejects_unknown_category(self, admin_ctx):
        result = products_service.create_product(
            admin_ctx, {"name": "Hat", "category": "Hats", "price_cents": 500}
        )
        assert result.error_type == "validation_error"

    @pytest.mark.parametrize("field", ["stock_quantity", "created_at"])
    def test_null_stock_and_server_fields_are_rejected(self, admin_ctx, field):
        result = products_service.create_product(
            admin_ctx, {"name": "Hat", "category": "Accessories", "price_cents": 500, field: None}
        )

        assert result.error_type == "validation_error"
        assert db.session.query(Product).count() == 0

    def test_stock_defaults_to_zero_without_ledger_entry(self, admin_ctx):
        result = products_service.create_product(
            admin_ctx, {"name": "Scarf", "category": "Accessories", "price_cents": 1500}
        )

        assert result.success
        assert result.data["stock_quantity"] == 0
        assert result.data["is_active"] is True
        assert _ledger_rows(result.data["id"]) == []

    def test_initial_stock_writes_one_restock_entry(self, admin_ctx, admin_user):
        result = products_service.create_product(
            admin_ctx,
            {"name": "Chino", "category": "Trousers", "price_cents": "4500", "stock_quantity": "10"},
        )

        assert result.success
        rows = _ledger_rows(result.data["id"])
        assert len(rows) == 1
        assert rows[0].type == "restock"
        assert rows[0].quantity_delta == 10
        assert rows[0].note == "Initial stock"
        assert rows[0].user_id == admin_user.id

    def test_ledger_failure_does_not_roll_back_product(self, admin_ctx, monkeypatch):
        def _boom(*args, **kwargs):
            raise RemoteStoreError("ledger unavailable")

        monkeypatch.setattr(products_service, "record_entry", _boom)

        result = products_service.create_product(
            admin_ctx,
            {"name": "Denim Jacket", "category": "Blazers", "price_cents": 9900, "stock_quantity": 10},
        )

        assert result.success
        product = db.session.get(Product, result.data["id"])
        assert product is not None
        assert product.is_active
        assert product.stock_quantity == 10
        assert _ledger_rows(product.id) == []

        # The product is still usable: the ledger gap shows up as drift
        drift = ledger_service.reconcile_product(product.id)
        assert drift.data["drift"] == 10

    def test_store_error_in_follow_up_is_logged_not_raised(self, admin_ctx, monkeypatch, caplog):
        def _locked(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(products_service, "record_entry", _locked)

        result = products_service.create_product(
            admin_ctx,
            {"name": "Loafer", "category": "Shoes", "price_cents": 7000, "stock_quantity": 3},
        )

        assert result.success
        assert "Initial stock ledger entry failed" in caplog.text

    def test_missing_session_only_skips_the_ledger_entry(self, db_session):
        result = products_service.create_product(
            None, {"name": "Polo", "category": "Shirts", "price_cents": 2500, "stock_quantity": 4}
        )

        assert result.success
        assert _ledger_rows(result.data["id"]) == []

    def test_active_barcode_collision_is_conflict(self, make_product, admin_ctx):
        make_product(barcode="DUP")

        result = products_service.create_product(
            admin_ctx, {"name": "Clone", "category": "Shirts", "price_cents": 100, "barcode": "DUP"}
        )

        assert not result.success
        assert result.error_type == "conflict"


class TestUpdateProduct:
    def test_partial_update_coerces_numeric_strings(self, make_product):
        p = make_product(price_cents=1000)

        result = products_service.update_product(p.id, {"price_cents": "1250", "size": "XL"})

        assert result.success
        assert result.data["price_cents"] == 1250
        assert result.data["size"] == "XL"
        assert result.data["name"] == p.name

    @pytest.mark.parametrize("payload", [
        {"price_cents": "12.5"},
        {"price_cents": "abc"},
        {"price_cents": -1},
        {"stock_quantity": -3},
        {"stock_quantity": 2.5},
        {"name": ""},
        {"id": 99},
    ])
    def test_invalid_fields_are_validation_errors(self, make_product, payload):
        p = make_product()

        result = products_service.update_product(p.id, payload)

        assert not result.success
        assert result.error_type == "validation_error"

    def test_update_missing_product_is_not_found(self, db_session):
        result = products_service.update_product(404, {"name": "x"})
        assert result.error_type == "not_found"

    def test_cannot_take_barcode_of_another_active_product(self, make_product):
        make_product(barcode="AAA")
        other = make_product(barcode="BBB")

        result = products_service.update_product(other.id, {"barcode": "AAA"})

        assert result.error_type == "conflict"

    def test_reactivating_with_taken_barcode_is_conflict(self, make_product):
        old = make_product(barcode="REUSE")
        products_service.delete_product(old.id)
        make_product(barcode="REUSE")

        result = products_service.update_product(old.id, {"is_active": True})

        assert result.error_type == "conflict"

    def test_direct_stock_edit_is_not_on_the_ledger(self, make_product):
        p = make_product(stock=5)

        products_service.update_product(p.id, {"stock_quantity": 8})

        assert len(_ledger_rows(p.id)) == 1
        assert ledger_service.reconcile_product(p.id).data["drift"] == 3


class TestSoftDelete:
    def test_soft_delete_keeps_row_and_is_idempotent(self, make_product):
        p = make_product(barcode="KEEP")

        first = products_service.delete_product(p.id)
        second = products_service.delete_product(p.id)

        assert first.success and second.success
        row = db.session.get(Product, p.id)
        assert row is not None
        assert row.is_active is False
        assert row.barcode == "KEEP"

    def test_delete_missing_product(self, db_session):
        assert products_service.delete_product(9999).error_type == "not_found"
