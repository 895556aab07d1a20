from .auth import User, SessionToken, USER_ROLES
from .inventory import Product, InventoryTransaction, PRODUCT_CATEGORIES, LEDGER_ENTRY_TYPES
from .sales import Sale, SaleLine, PAYMENT_METHODS

__all__ = [
    'User', 'SessionToken', 'USER_ROLES',
    'Product', 'InventoryTransaction', 'PRODUCT_CATEGORIES', 'LEDGER_ENTRY_TYPES',
    'Sale', 'SaleLine', 'PAYMENT_METHODS',
]
