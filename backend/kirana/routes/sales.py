# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/kirana/routes/sales.py
"""
Sales routes: checkout, sales history and invoices.

Checkout is a single call: the client sends the cart lines and the
server rebuilds the cart from current product rows, then records the
sale, its items and the stock decrements in one transaction.
"""
from flask import Blueprint, request, g, current_app, Response

from ..decorators import require_auth
from ..services import sales_service, invoice_service
from ..services.cart import CartError
from ..services.invoice_service import InvoiceNotFoundError
from ..services.sales_service import SaleError, SaleNotFoundError, UnauthenticatedError
from ..services.store_access import StoreAccessError
from ..services.transaction import PersistenceError
from ..validation import ValidationError

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/checkout")
@require_auth
def checkout_route():
    """
    Complete a sale.

    Body:
    {
      "store_id": 1,
      "items": [{"product_id": 3, "quantity": 2}],
      "customer_name": "...", "customer_phone": "...",
      "payment_method": "cash" | "card" | "upi" | "other",
      "discount": "10.00"
    }
    """
    payload = request.get_json(silent=True) or {}
    store_id = payload.get("store_id")
    if not isinstance(store_id, int) or isinstance(store_id, bool):
        return {"error": "store_id is required"}, 400

    try:
        sale = sales_service.checkout(
            store_id,
            g.caller,
            payload.get("items"),
            customer_name=payload.get("customer_name"),
            customer_phone=payload.get("customer_phone"),
            payment_method=payload.get("payment_method") or "cash",
            discount=payload.get("discount") or 0,
        )
    except UnauthenticatedError as e:
        return {"error": str(e)}, 401
    except ValidationError as e:
        return {"error": str(e)}, 400
    except (SaleError, CartError) as e:
        return {"error": str(e), "details": e.details}, 400
    except StoreAccessError as e:
        return {"error": str(e)}, 404 if e.not_found else 403
    except PersistenceError as e:
        return {"error": str(e)}, 500
    except Exception:
        current_app.logger.exception("Checkout failed")
        return {"error": "Internal server error"}, 500

    return {"sale": sale.to_dict(include_items=True)}, 201


@sales_bp.post("/quote")
@require_auth
def quote_route():
    """Totals for {store_id, items, discount} without recording a sale."""
    payload = request.get_json(silent=True) or {}
    store_id = payload.get("store_id")
    if not isinstance(store_id, int) or isinstance(store_id, bool):
        return {"error": "store_id is required"}, 400

    try:
        return sales_service.quote(store_id, g.caller, payload.get("items"), discount=payload.get("discount") or 0)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except (SaleError, CartError) as e:
        return {"error": str(e), "details": e.details}, 400
    except StoreAccessError as e:
        return {"error": str(e)}, 404 if e.not_found else 403
    except PersistenceError as e:
        return {"error": str(e)}, 500
    except Exception:
        current_app.logger.exception("Quote failed")
        return {"error": "Internal server error"}, 500


@sales_bp.get("")
@require_auth
def list_sales_route():
    """Sales history for ?store_id=, newest first. Optional ?limit=."""
    store_id = request.args.get("store_id", type=int)
    if store_id is None:
        return {"error": "store_id is required"}, 400

    try:
        sales = sales_service.list_sales(store_id, g.caller, limit=request.args.get("limit", type=int))
    except StoreAccessError as e:
        return {"error": str(e)}, 404 if e.not_found else 403

    return {"items": [s.to_dict() for s in sales], "count": len(sales)}


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id, g.caller)
    except SaleNotFoundError as e:
        return {"error": str(e)}, 404
    return {"sale": sale.to_dict(include_items=True)}


@sales_bp.get("/<int:sale_id>/invoice")
@require_auth
def invoice_route(sale_id: int):
    """Invoice as JSON, or printable HTML with ?format=html."""
    try:
        if request.args.get("format") == "html":
            html = invoice_service.render_invoice_html(sale_id, g.caller)
            return Response(html, mimetype="text/html")
        return {"invoice": invoice_service.build_invoice(sale_id, g.caller)}
    except InvoiceNotFoundError as e:
        return {"error": str(e)}, 404
