from __future__ import annotations

from ..extensions import db
from ..models import Store
from .store_access import accessible_store_ids, require_store_access
from .transaction import run_in_transaction

STORE_MUTABLE_FIELDS = ("name", "phone", "address", "gst_number")


class StoreError(Exception):
    """Raised when store operations fail."""
    pass


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def create_store(
    name: str,
    owner_id: int,
    phone: str | None = None,
    address: str | None = None,
    gst_number: str | None = None,
) -> Store:
    """Insert a store row for an existing owner. Commits."""
    name = _clean(name)
    if not name:
        raise StoreError("Store name is required")
    if len(name) > 200:
        raise StoreError("Store name exceeds max length 200")
    if owner_id is None:
        raise StoreError("Store owner is required")

    def _op():
        store = Store(
            name=name,
            owner_id=owner_id,
            phone=_clean(phone),
            address=_clean(address),
            gst_number=_clean(gst_number),
            is_active=True,
        )
        db.session.add(store)
        db.session.flush()
        return store

    return run_in_transaction(_op)


def delete_store(store_id: int) -> None:
    """
    Hard-delete a store that has no products or sales. Commits.

    Only used to compensate a half-finished provisioning.
    """
    store = db.session.get(Store, store_id)
    if not store:
        raise StoreError("Store not found")
    if store.products or store.sales:
        raise StoreError("Store has products or sales; deactivate it instead")

    def _op():
        db.session.delete(store)

    run_in_transaction(_op)


def update_store(store_id: int, caller, patch: dict) -> Store:
    store = require_store_access(store_id, caller)

    unknown = set(patch) - set(STORE_MUTABLE_FIELDS)
    if unknown:
        raise StoreError(f"Field not allowed: {', '.join(sorted(unknown))}")

    if "name" in patch and not _clean(patch["name"]):
        raise StoreError("Store name is required")

    def _op():
        for key, value in patch.items():
            setattr(store, key, _clean(value))
        return store

    return run_in_transaction(_op)


def set_store_active(store_id: int, caller, is_active: bool) -> Store:
    """Deactivate (or reactivate) a store. Stores are never hard-deleted."""
    store = require_store_access(store_id, caller)

    def _op():
        store.is_active = is_active
        return store

    return run_in_transaction(_op)


def get_store(store_id: int, caller) -> Store:
    return require_store_access(store_id, caller)


def list_stores(caller) -> list[Store]:
    """Newest first. Admins see every store."""
    query = db.session.query(Store)
    allowed = accessible_store_ids(caller)
    if allowed is not None:
        if not allowed:
            return []
        query = query.filter(Store.id.in_(allowed))
    return query.order_by(Store.created_at.desc(), Store.id.desc()).all()


def get_owned_store(caller) -> Store | None:
    """The caller's working store: first active store they own, else their assigned store."""
    store = (
        db.session.query(Store)
        .filter(Store.owner_id == caller.user_id, Store.is_active.is_(True))
        .order_by(Store.id.asc())
        .first()
    )
    if store is None and caller.store_id is not None:
        store = (
            db.session.query(Store)
            .filter(Store.id == caller.store_id, Store.is_active.is_(True))
            .first()
        )
    return store
