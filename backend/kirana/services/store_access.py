"""
Store Access: row-level authorization helpers

WHY: Every store-owned row (products, sales) is only visible to callers
related to that store. Centralize the rule so services cannot drift.

RULES:
1. admin: every store
2. store_owner: stores where stores.owner_id == caller.user_id
3. cashier: the store in caller.store_id

Unknown stores and stores outside the caller's reach both raise
StoreAccessError(not_found=True) so ids cannot be probed.

USAGE:
    from kirana.services.store_access import require_store_access

    store = require_store_access(store_id, caller)
"""

from flask import current_app

from ..extensions import db
from ..models import Store, ROLE_STORE_OWNER, ROLE_CASHIER


class StoreAccessError(Exception):
    """Raised when a caller reaches for a store it is not related to."""
    def __init__(self, message: str = "Store not found", not_found: bool = True):
        super().__init__(message)
        self.not_found = not_found


def accessible_store_ids(caller) -> set[int] | None:
    """
    Store ids the caller may touch. None means "all stores" (admin).
    """
    if caller.is_admin:
        return None

    ids: set[int] = set()
    if caller.has_role(ROLE_STORE_OWNER):
        rows = db.session.query(Store.id).filter(Store.owner_id == caller.user_id).all()
        ids.update(store_id for (store_id,) in rows)
    if caller.has_role(ROLE_CASHIER) and caller.store_id is not None:
        ids.add(caller.store_id)
    return ids


def can_access_store(store: Store, caller) -> bool:
    allowed = accessible_store_ids(caller)
    return allowed is None or store.id in allowed


def require_store_access(store_id: int, caller, *, require_active: bool = False) -> Store:
    """
    Validate that the caller may act on a store.

    Returns:
        The Store object if valid

    Raises:
        StoreAccessError if the store doesn't exist, is outside the
        caller's stores, or (with require_active) is deactivated
    """
    store = db.session.get(Store, store_id) if store_id is not None else None

    if not store or not can_access_store(store, caller):
        current_app.logger.warning(
            "Store access denied: user_id=%s store_id=%s", caller.user_id, store_id
        )
        raise StoreAccessError("Store not found")

    if require_active and not store.is_active:
        raise StoreAccessError("Store is not active", not_found=False)

    return store
