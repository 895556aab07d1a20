"""
Concurrent checkouts against a file-backed SQLite database.

Each worker runs in its own thread and app context, with its own cashier and
session, so only the store arbitrates between them.
"""

import threading

import pytest

from pos_ledger import create_app
from pos_ledger.extensions import db
from pos_ledger.models import InventoryTransaction, Product, Sale, SaleLine, User
from pos_ledger.services import ledger_service, products_service, sales_service
from pos_ledger.services.auth_service import create_user
from pos_ledger.services.session_service import SessionContext


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.db'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {
            'connect_args': {'timeout': 30, 'check_same_thread': False},
        },
        'BCRYPT_ROUNDS': 4,
        'SALE_RETRY_ATTEMPTS': 5,
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()


def _seed(app, *, cashiers: int, stock: int) -> tuple[list[int], int]:
    with app.app_context():
        admin = create_user("admin", "Password123", role="admin")
        cashier_ids = [
            create_user(f"cashier{i}", "Password123").id
            for i in range(cashiers)
        ]
        result = products_service.create_product(
            SessionContext(user=admin),
            {"name": "Last Parka", "category": "Blazers", "price_cents": 15000, "stock_quantity": stock},
        )
        assert result.success, result.error
        return cashier_ids, result.data["id"]


def _run_checkouts(app, cashier_ids, product_id, quantity):
    results = []
    lock = threading.Lock()
    barrier = threading.Barrier(len(cashier_ids))

    def worker(cashier_id):
        with app.app_context():
            try:
                ctx = SessionContext(user=db.session.get(User, cashier_id))
                barrier.wait()
                result = sales_service.create_sale(
                    ctx,
                    [{"product_id": product_id, "quantity": quantity, "unit_price_cents": 15000}],
                    "Cash",
                )
                with lock:
                    results.append(result)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(cid,)) for cid in cashier_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def _assert_store_consistent(app, product_id, successes):
    with app.app_context():
        product = db.session.get(Product, product_id)
        sale_entries = (
            db.session.query(InventoryTransaction)
            .filter_by(product_id=product_id, type="sale")
            .count()
        )
        assert product.stock_quantity >= 0
        assert db.session.query(Sale).count() == successes
        assert db.session.query(SaleLine).count() == successes
        assert sale_entries == successes
        assert ledger_service.reconcile_product(product_id).data["drift"] == 0
        return product.stock_quantity


def test_two_cashiers_race_for_the_last_unit(file_app):
    cashier_ids, product_id = _seed(file_app, cashiers=2, stock=1)

    results = _run_checkouts(file_app, cashier_ids, product_id, quantity=1)

    assert len(results) == 2
    successes = sum(1 for r in results if r.success)
    assert successes == 1
    assert [r.error_type for r in results if not r.success] == ["insufficient_stock"]

    stock = _assert_store_consistent(file_app, product_id, successes)
    assert stock == 1 - successes


def test_many_cashiers_never_oversell(file_app):
    cashier_ids, product_id = _seed(file_app, cashiers=5, stock=10)

    results = _run_checkouts(file_app, cashier_ids, product_id, quantity=3)

    successes = sum(1 for r in results if r.success)
    assert successes == 3
    assert [r.error_type for r in results if not r.success] == ["insufficient_stock"] * 2

    stock = _assert_store_consistent(file_app, product_id, successes)
    assert stock == 10 - 3 * successes
