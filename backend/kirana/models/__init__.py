from .tenancy import Store
from .inventory import Product
from .sales import Sale, SaleItem, PAYMENT_METHODS
from .documents import DocumentSequence
from .auth import (
    User,
    UserRole,
    SessionToken,
    APP_ROLES,
    ROLE_ADMIN,
    ROLE_STORE_OWNER,
    ROLE_CASHIER,
)

__all__ = [
    'Store',
    'Product',
    'Sale', 'SaleItem', 'PAYMENT_METHODS',
    'DocumentSequence',
    'User', 'UserRole', 'SessionToken',
    'APP_ROLES', 'ROLE_ADMIN', 'ROLE_STORE_OWNER', 'ROLE_CASHIER',
]
