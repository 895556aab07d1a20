# backend/pos_ledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pos_ledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pos_ledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # A product with 0 < stock_quantity <= LOW_STOCK_THRESHOLD is low on stock.
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "10"))

    LEDGER_HISTORY_LIMIT = 50
    LEDGER_HISTORY_MAX_LIMIT = 500
    TOP_PRODUCTS_LIMIT = 5

    # Whole-transaction retries on lock/serialization errors during checkout
    SALE_RETRY_ATTEMPTS = int(os.environ.get("SALE_RETRY_ATTEMPTS", "3"))

    SESSION_ABSOLUTE_HOURS = 24
    SESSION_IDLE_HOURS = 2
