# Overview: Flask API routes for stores and dashboards; parses input and returns JSON responses.

# backend/kirana/routes/stores.py
"""
Store routes.

Stores are created only by provisioning (POST /create-store-owner).
Here callers list and read the stores they are related to, owners edit
contact details, and admins deactivate stores.
"""
from flask import Blueprint, request, g, current_app

from ..decorators import require_auth, require_role
from ..models import ROLE_ADMIN, ROLE_STORE_OWNER
from ..services import store_service, reporting_service
from ..services.store_access import StoreAccessError
from ..services.store_service import StoreError
from ..services.transaction import PersistenceError

stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")


def _access_error(e: StoreAccessError):
    if e.not_found:
        return {"error": str(e)}, 404
    return {"error": str(e)}, 403


@stores_bp.get("")
@require_auth
def list_stores_route():
    """Stores visible to the caller, newest first."""
    stores = store_service.list_stores(g.caller)
    return {"items": [s.to_dict() for s in stores], "count": len(stores)}


@stores_bp.get("/current")
@require_auth
def current_store_route():
    """The caller's working store (owned, else assigned)."""
    store = store_service.get_owned_store(g.caller)
    if store is None:
        return {"error": "Your account is not associated with any store yet"}, 404
    return store.to_dict()


@stores_bp.get("/overview")
@require_auth
@require_role(ROLE_ADMIN)
def admin_overview_route():
    return reporting_service.admin_overview(g.caller)


@stores_bp.get("/<int:store_id>")
@require_auth
def get_store_route(store_id: int):
    try:
        store = store_service.get_store(store_id, g.caller)
    except StoreAccessError as e:
        return _access_error(e)
    return store.to_dict()


@stores_bp.patch("/<int:store_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STORE_OWNER)
def update_store_route(store_id: int):
    """Update name, phone, address or gst_number."""
    payload = request.get_json(silent=True) or {}
    try:
        store = store_service.update_store(store_id, g.caller, payload)
    except StoreAccessError as e:
        return _access_error(e)
    except StoreError as e:
        return {"error": str(e)}, 400
    except PersistenceError as e:
        return {"error": str(e)}, 500
    return store.to_dict()


@stores_bp.post("/<int:store_id>/deactivate")
@require_auth
@require_role(ROLE_ADMIN)
def deactivate_store_route(store_id: int):
    try:
        store = store_service.set_store_active(store_id, g.caller, False)
    except StoreAccessError as e:
        return _access_error(e)
    except PersistenceError as e:
        return {"error": str(e)}, 500
    current_app.logger.info("Store deactivated: id=%s by user_id=%s", store_id, g.caller.user_id)
    return store.to_dict()


@stores_bp.post("/<int:store_id>/activate")
@require_auth
@require_role(ROLE_ADMIN)
def activate_store_route(store_id: int):
    try:
        store = store_service.set_store_active(store_id, g.caller, True)
    except StoreAccessError as e:
        return _access_error(e)
    except PersistenceError as e:
        return {"error": str(e)}, 500
    return store.to_dict()


@stores_bp.get("/<int:store_id>/dashboard")
@require_auth
def store_dashboard_route(store_id: int):
    """Total products, low-stock count and today's takings."""
    try:
        return reporting_service.store_dashboard(store_id, g.caller)
    except StoreAccessError as e:
        return _access_error(e)
