"""The Alembic revision builds the same schema as the models."""

from pathlib import Path

import pytest
from flask_migrate import downgrade, upgrade
from sqlalchemy import inspect, text
from sqlalchemy.exc import IntegrityError

from pos_ledger import create_app
from pos_ledger.extensions import db


MIGRATIONS_DIR = str(Path(__file__).resolve().parents[1] / "migrations")


@pytest.fixture
def migrated_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'migrated.db'}",
    })
    with app.app_context():
        upgrade(directory=MIGRATIONS_DIR)
        yield app
        db.session.remove()
        db.engine.dispose()


def test_upgrade_creates_every_model_table_and_column(migrated_app):
    inspector = inspect(db.engine)

    assert set(db.metadata.tables) <= set(inspector.get_table_names())
    for name, table in db.metadata.tables.items():
        migrated = {col["name"] for col in inspector.get_columns(name)}
        assert migrated == {col.name for col in table.columns}, name


def test_upgrade_creates_every_model_index(migrated_app):
    inspector = inspect(db.engine)

    for name, table in db.metadata.tables.items():
        expected = {index.name for index in table.indexes}
        migrated = {index["name"] for index in inspector.get_indexes(name)}
        assert expected <= migrated, name


def _insert_product(barcode, is_active):
    db.session.execute(
        text(
            "INSERT INTO products (name, category, barcode, price_cents, is_on_sale, "
            "stock_quantity, is_active, version_id) "
            "VALUES ('Tee', 'Shirts', :barcode, 100, 0, 0, :active, 1)"
        ),
        {"barcode": barcode, "active": 1 if is_active else 0},
    )


def test_barcode_index_is_partial_on_active(migrated_app):
    _insert_product("123", is_active=False)
    _insert_product("123", is_active=True)
    db.session.commit()

    with pytest.raises(IntegrityError):
        _insert_product("123", is_active=True)
    db.session.rollback()


def test_stock_floor_check_constraint(migrated_app):
    with pytest.raises(IntegrityError):
        db.session.execute(
            text(
                "INSERT INTO products (name, category, price_cents, is_on_sale, "
                "stock_quantity, is_active, version_id) "
                "VALUES ('Tee', 'Shirts', 100, 0, -1, 1, 1)"
            )
        )
    db.session.rollback()


def test_downgrade_drops_the_schema(migrated_app):
    downgrade(directory=MIGRATIONS_DIR, revision="base")

    remaining = set(inspect(db.engine).get_table_names())
    assert remaining.isdisjoint(db.metadata.tables)
