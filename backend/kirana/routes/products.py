# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/kirana/routes/products.py
"""
Product management routes, scoped to a store.

SECURITY: All routes require authentication.
- Any caller related to the store may read its catalog
- Writes require admin or store_owner (enforced in products_service)
"""
from flask import Blueprint, request, g, current_app

from ..services import products_service
from ..services.permission_service import PermissionDeniedError
from ..services.products_service import ProductNotFoundError
from ..services.store_access import StoreAccessError
from ..services.transaction import PersistenceError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _flag(name: str) -> bool:
    return (request.args.get(name) or "").strip().lower() in {"1", "true", "yes", "on"}


def _service_error(e: Exception):
    """Map products_service exceptions to responses."""
    if isinstance(e, ValidationError):
        return {"error": str(e)}, 400
    if isinstance(e, ConflictError):
        return {"error": str(e)}, 409
    if isinstance(e, PermissionDeniedError):
        return {"error": "Permission denied", "message": str(e)}, 403
    if isinstance(e, StoreAccessError):
        return {"error": str(e)}, 404 if e.not_found else 403
    if isinstance(e, ProductNotFoundError):
        return {"error": "Product not found"}, 404
    if isinstance(e, PersistenceError):
        return {"error": str(e)}, 500
    current_app.logger.exception("Unhandled products error")
    return {"error": "Internal server error"}, 500


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List a store's products.

    Query params:
    - store_id: int (required)
    - search: substring of name, sku or barcode (case-insensitive)
    - category: exact category
    - in_stock: only stock_quantity > 0
    - active: only active products
    - sort: "newest" (default) or "name"
    """
    store_id = request.args.get("store_id", type=int)
    if store_id is None:
        return {"error": "store_id is required"}, 400

    try:
        products = products_service.list_products(
            store_id,
            g.caller,
            search=request.args.get("search"),
            category=request.args.get("category"),
            in_stock_only=_flag("in_stock"),
            active_only=_flag("active"),
            sort=request.args.get("sort", "newest"),
        )
    except Exception as e:
        return _service_error(e)

    return {
        "items": [products_service.product_view(p) for p in products],
        "count": len(products),
    }


@products_bp.post("")
@require_auth
def create_product_route():
    """Create a product. Body carries store_id plus product fields."""
    payload = dict(request.get_json(silent=True) or {})
    store_id = payload.pop("store_id", None)
    if not isinstance(store_id, int) or isinstance(store_id, bool):
        return {"error": "store_id is required"}, 400

    try:
        product = products_service.create_product(store_id, g.caller, payload)
    except Exception as e:
        return _service_error(e)

    return products_service.product_view(product), 201


@products_bp.post("/quick-add")
@require_auth
def quick_add_product_route():
    """
    Add a product from name, category, price and stock.

    Body: {store_id, name, category, price, stock_quantity, last_product_id?}
    """
    payload = request.get_json(silent=True) or {}
    store_id = payload.get("store_id")
    if not isinstance(store_id, int) or isinstance(store_id, bool):
        return {"error": "store_id is required"}, 400

    try:
        product = products_service.quick_add_product(
            store_id,
            g.caller,
            name=payload.get("name"),
            category=payload.get("category"),
            price=payload.get("price"),
            stock_quantity=payload.get("stock_quantity"),
            last_product_id=payload.get("last_product_id"),
        )
    except Exception as e:
        return _service_error(e)

    return products_service.product_view(product), 201


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id, g.caller)
    except Exception as e:
        return _service_error(e)
    return products_service.product_view(product)


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.update_product(product_id, g.caller, payload)
    except Exception as e:
        return _service_error(e)
    return products_service.product_view(product)


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """
    Delete a product; products already sold are deactivated instead.
    """
    try:
        outcome = products_service.delete_product(product_id, g.caller)
    except Exception as e:
        return _service_error(e)
    return {"ok": True, "result": outcome}, 200
