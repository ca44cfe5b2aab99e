# backend/kirana/services/products_service.py
"""
Products Service with Store Scoping

STORE SCOPING: All product operations are store-scoped.
- list_products requires a store the caller can access
- create/update/delete validate store access and require a catalog role
  (admin or store_owner); cashiers read the catalog to ring up sales
"""
from __future__ import annotations

import math
import secrets
import time
from datetime import date, datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Product, SaleItem, ROLE_ADMIN, ROLE_STORE_OWNER
from ..money import to_money
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)
from .permission_service import require_any_role
from .store_access import require_store_access
from .transaction import run_in_transaction
from kirana.time_utils import utcnow

CATALOG_ROLES = (ROLE_ADMIN, ROLE_STORE_OWNER)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "sku", "barcode", "category",
        "price", "cost_price",
        "stock_quantity", "min_stock_level",
        "unit", "tax_rate", "expiry_date", "is_active",
    },
    required_on_create={"name", "price"},
)

# Matched on the first word of the template name, case-insensitively.
QUICK_TEMPLATES = (
    {"name": "Rice (1kg)", "category": "Food", "unit": "kg", "tax_rate": Decimal("0")},
    {"name": "Dal (1kg)", "category": "Food", "unit": "kg", "tax_rate": Decimal("0")},
    {"name": "Cooking Oil (1L)", "category": "Food", "unit": "liter", "tax_rate": Decimal("5")},
    {"name": "Milk (1L)", "category": "Beverages", "unit": "liter", "tax_rate": Decimal("0")},
    {"name": "Biscuits (Pack)", "category": "Food", "unit": "pack", "tax_rate": Decimal("12")},
    {"name": "Bread (Pack)", "category": "Food", "unit": "pack", "tax_rate": Decimal("0")},
)

QUICK_ADD_COST_RATIO = Decimal("0.85")
QUICK_ADD_MIN_STOCK = 5
DEFAULT_UNIT = "piece"
DEFAULT_TAX_RATE = Decimal("5")

EXPIRED = "expired"
EXPIRING_SOON = "expiring_soon"
EXPIRY_OK = "ok"


class ProductNotFoundError(Exception):
    """Raised when a product id does not resolve in the caller's stores."""
    pass


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _require_product(product_id: int, caller) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise ProductNotFoundError("Product not found")
    # Raises StoreAccessError(not_found=True) when outside the caller's stores
    require_store_access(product.store_id, caller)
    return product


def _ensure_sku_free(store_id: int, sku: str | None, exclude_id: int | None = None) -> None:
    if not sku:
        return
    query = db.session.query(Product.id).filter(Product.store_id == store_id, Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("SKU already exists for this store.")


def list_products(
    store_id: int,
    caller,
    search: str | None = None,
    category: str | None = None,
    in_stock_only: bool = False,
    active_only: bool = False,
    sort: str = "newest",
) -> list[Product]:
    """
    Store-scoped product listing.

    search: case-insensitive substring over name, sku and barcode; LIKE
    wildcards in the term match literally.
    sort: "newest" (catalog) or "name" (POS grid).
    """
    require_store_access(store_id, caller)

    query = db.session.query(Product).filter(Product.store_id == store_id)

    if search and search.strip():
        pattern = f"%{_escape_like(search)}%"
        query = query.filter(
            or_(
                Product.name.ilike(pattern, escape="\\"),
                Product.sku.ilike(pattern, escape="\\"),
                Product.barcode.ilike(pattern, escape="\\"),
            )
        )

    if category:
        query = query.filter(Product.category == category)
    if in_stock_only:
        query = query.filter(Product.stock_quantity > 0)
    if active_only:
        query = query.filter(Product.is_active.is_(True))

    if sort == "name":
        query = query.order_by(Product.name.asc(), Product.id.asc())
    elif sort == "newest":
        query = query.order_by(Product.created_at.desc(), Product.id.desc())
    else:
        raise ValidationError("sort must be 'newest' or 'name'")

    return query.all()


def get_product(product_id: int, caller) -> Product:
    return _require_product(product_id, caller)


def create_product(store_id: int, caller, payload: dict) -> Product:
    """
    Create a product from a raw JSON payload.

    Raises:
        ValidationError: bad payload or rule violation
        ConflictError: SKU already exists in the store
    """
    require_any_role(caller, *CATALOG_ROLES, resource="products.create")
    require_store_access(store_id, caller)

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    _ensure_sku_free(store_id, patch.get("sku"))

    def _op():
        product = Product(store_id=store_id, unit=DEFAULT_UNIT)
        for key, value in patch.items():
            setattr(product, key, value)
        db.session.add(product)
        db.session.flush()
        return product

    product = run_in_transaction(_op)
    current_app.logger.info(
        "Product created: id=%s store_id=%s sku=%s", product.id, store_id, product.sku
    )
    return product


def update_product(product_id: int, caller, payload: dict) -> Product:
    require_any_role(caller, *CATALOG_ROLES, resource="products.update")
    product = _require_product(product_id, caller)

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)
    if "sku" in patch and patch["sku"] != product.sku:
        _ensure_sku_free(product.store_id, patch["sku"], exclude_id=product.id)

    def _op():
        for key, value in patch.items():
            setattr(product, key, value)
        return product

    return run_in_transaction(_op)


def delete_product(product_id: int, caller) -> str:
    """
    Delete a product.

    Products already on a sale are deactivated instead so sale history
    keeps its references. Returns "deleted" or "deactivated".
    """
    require_any_role(caller, *CATALOG_ROLES, resource="products.delete")
    product = _require_product(product_id, caller)

    referenced = (
        db.session.query(SaleItem.id).filter(SaleItem.product_id == product.id).first()
        is not None
    )

    def _op():
        if referenced:
            product.is_active = False
            return "deactivated"
        db.session.delete(product)
        return "deleted"

    outcome = run_in_transaction(_op)
    current_app.logger.info("Product %s: id=%s", outcome, product_id)
    return outcome


def _match_template(name: str) -> dict | None:
    lowered = name.lower()
    for template in QUICK_TEMPLATES:
        if template["name"].lower().split(" ")[0] in lowered:
            return template
    return None


def quick_add_product(
    store_id: int,
    caller,
    name: str,
    category: str,
    price,
    stock_quantity,
    last_product_id: int | None = None,
) -> Product:
    """
    Add a product from four fields, filling the rest with defaults.

    Unit and tax rate come from a matching template, else from the last
    product added, else piece / 5%. Cost price is 85% of price and the
    minimum stock level is 5.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("Product name is required")
    if len(name) > 200:
        raise ValidationError("name exceeds max length 200")
    if not (category or "").strip():
        raise ValidationError("Category is required")

    try:
        price = to_money(price)
    except ValueError:
        raise ValidationError("price must be a number")
    if price <= 0:
        raise ValidationError("Price must be greater than 0")

    if isinstance(stock_quantity, bool):
        raise ValidationError("stock_quantity must be an integer")
    try:
        stock_quantity = int(stock_quantity)
    except (TypeError, ValueError):
        raise ValidationError("stock_quantity must be an integer")
    if stock_quantity < 0:
        raise ValidationError("Stock must be a valid number")

    template = _match_template(name)
    last = None
    if template is None and last_product_id is not None:
        last = db.session.get(Product, last_product_id)
        if last is not None and last.store_id != store_id:
            last = None

    if template is not None:
        unit, tax_rate = template["unit"], template["tax_rate"]
    elif last is not None:
        unit, tax_rate = last.unit, last.tax_rate
    else:
        unit, tax_rate = DEFAULT_UNIT, DEFAULT_TAX_RATE

    payload = {
        "name": name,
        "category": category.strip(),
        "price": price,
        "cost_price": to_money(price * QUICK_ADD_COST_RATIO),
        "stock_quantity": stock_quantity,
        "min_stock_level": QUICK_ADD_MIN_STOCK,
        "unit": unit,
        "tax_rate": tax_rate,
        "sku": f"SKU-{int(time.time() * 1000)}-{secrets.token_hex(2).upper()}",
    }
    return create_product(store_id, caller, payload)


def expiry_status(expiry_date: date | None, now: datetime | None = None) -> str | None:
    """
    Classify an expiry date against `now`.

    expired: the expiry date's midnight is already past.
    expiring_soon: 0 < ceil(days until expiry) <= EXPIRY_WARNING_DAYS.
    """
    if expiry_date is None:
        return None
    if now is None:
        now = utcnow()

    expiry = datetime(expiry_date.year, expiry_date.month, expiry_date.day)
    if expiry < now:
        return EXPIRED

    days = math.ceil((expiry - now).total_seconds() / 86400)
    warning_days = current_app.config.get("EXPIRY_WARNING_DAYS", 30)
    if 0 < days <= warning_days:
        return EXPIRING_SOON
    return EXPIRY_OK


def is_low_stock(product: Product) -> bool:
    return product.is_low_stock


def product_view(product: Product, now: datetime | None = None) -> dict:
    """to_dict plus the derived expiry flag."""
    data = product.to_dict()
    data["expiry_status"] = expiry_status(product.expiry_date, now)
    return data
