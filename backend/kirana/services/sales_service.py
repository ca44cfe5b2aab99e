"""
Sales Service - cart to recorded sale

WHY: A sale, its line items and the stock decrements must land together
or not at all. complete_sale writes all three in ONE transaction:

1. Sale header with computed totals and a per-store sale number
2. One SaleItem per cart line
3. Per line: UPDATE products SET stock_quantity = stock_quantity - :qty
   WHERE id = :id AND stock_quantity >= :qty

A decrement that matches no row means stock moved since the cart was
built; InsufficientStockError is raised and everything rolls back.
Database failures surface as PersistenceError. Nothing is retried.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import Product, Sale, SaleItem, PAYMENT_METHODS
from ..money import ZERO, to_money
from ..validation import ValidationError
from .cart import Cart, CartError, InsufficientStockError
from .document_service import next_document_number
from .store_access import accessible_store_ids, require_store_access
from .transaction import run_in_transaction

SALE_DOCUMENT_TYPE = "SALE"
SALE_NUMBER_PREFIX = "SALE"


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class EmptyCartError(SaleError):
    """Completion attempted with no lines."""
    pass


class UnauthenticatedError(Exception):
    """No authenticated caller."""
    pass


class SaleNotFoundError(Exception):
    pass


def _validate_discount(discount, ceiling):
    try:
        discount = to_money(discount)
    except ValueError:
        raise ValidationError("discount must be a number")
    if discount < ZERO:
        raise ValidationError("discount must be >= 0")
    if discount > ceiling:
        raise ValidationError("discount cannot exceed subtotal plus tax")
    return discount


def _check_lines_belong_to_store(cart: Cart, store_id: int) -> None:
    product_ids = [line.product.product_id for line in cart.lines]
    rows = (
        db.session.query(Product.id)
        .filter(Product.id.in_(product_ids), Product.store_id == store_id)
        .all()
    )
    found = {product_id for (product_id,) in rows}
    foreign = [pid for pid in product_ids if pid not in found]
    if foreign:
        raise SaleError("Products do not belong to this store", details={"product_ids": foreign})


def complete_sale(
    cart: Cart,
    store_id: int,
    caller,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    payment_method: str = "cash",
    discount=0,
) -> Sale:
    """
    Record the cart as a completed sale.

    Raises:
        UnauthenticatedError: caller is None
        EmptyCartError: cart has no lines (nothing is written)
        StoreAccessError: store not accessible or not active
        ValidationError: bad payment method or discount
        InsufficientStockError: a conditional decrement missed (rolled back)
        PersistenceError: database failure (rolled back)
    """
    if caller is None:
        raise UnauthenticatedError("Not authenticated")
    if cart is None or cart.is_empty:
        raise EmptyCartError("Cart is empty")

    require_store_access(store_id, caller, require_active=True)

    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    preview = cart.compute_totals()
    discount = _validate_discount(discount, preview.subtotal + preview.tax_amount)
    totals = cart.compute_totals(discount)

    _check_lines_belong_to_store(cart, store_id)

    lines = cart.lines

    def _op():
        sale = Sale(
            store_id=store_id,
            cashier_id=caller.user_id,
            sale_number=next_document_number(
                store_id=store_id,
                document_type=SALE_DOCUMENT_TYPE,
                prefix=SALE_NUMBER_PREFIX,
            ),
            customer_name=(customer_name or "").strip() or None,
            customer_phone=(customer_phone or "").strip() or None,
            payment_method=payment_method,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            discount_amount=totals.discount_amount,
            total_amount=totals.total_amount,
            status="completed",
        )
        db.session.add(sale)
        db.session.flush()

        for line in lines:
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=line.product.product_id,
                product_name=line.product.name,
                quantity=line.quantity,
                unit_price=line.product.price,
                tax_rate=line.product.tax_rate,
                total_price=line.line_total,
            ))

        for line in lines:
            stmt = (
                update(Product)
                .where(
                    Product.id == line.product.product_id,
                    Product.stock_quantity >= line.quantity,
                )
                .values(stock_quantity=Product.stock_quantity - line.quantity)
                .execution_options(synchronize_session=False)
            )
            result = db.session.execute(stmt)
            if result.rowcount != 1:
                raise InsufficientStockError(
                    f"Insufficient stock for {line.product.name}",
                    details={"product_id": line.product.product_id, "requested": line.quantity},
                )

        db.session.flush()
        return sale

    sale = run_in_transaction(_op)

    current_app.logger.info(
        "Sale completed: sale_number=%s store_id=%s cashier_id=%s total=%s",
        sale.sale_number,
        store_id,
        caller.user_id,
        sale.total_amount,
    )
    return sale


def _parse_items(items) -> dict[int, int]:
    if not isinstance(items, list) or not items:
        raise EmptyCartError("Cart is empty")

    requested: dict[int, int] = {}
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object")
        product_id = item.get("product_id")
        quantity = item.get("quantity", 1)
        if not isinstance(product_id, int) or isinstance(product_id, bool):
            raise ValidationError("product_id must be an integer")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValidationError("quantity must be a positive integer")
        requested[product_id] = requested.get(product_id, 0) + quantity
    return requested


def build_cart(store_id: int, items) -> Cart:
    """Build a Cart from [{product_id, quantity}] using current product rows."""
    requested = _parse_items(items)

    products = (
        db.session.query(Product)
        .filter(
            Product.id.in_(list(requested)),
            Product.store_id == store_id,
            Product.is_active.is_(True),
        )
        .all()
    )
    by_id = {product.id: product for product in products}
    missing = [pid for pid in requested if pid not in by_id]
    if missing:
        raise CartError("Products not found in this store", details={"product_ids": missing})

    cart = Cart()
    for product_id, quantity in requested.items():
        product = by_id[product_id]
        if quantity > (product.stock_quantity or 0):
            raise InsufficientStockError(
                f"Insufficient stock for {product.name}",
                details={
                    "product_id": product_id,
                    "requested": quantity,
                    "available": product.stock_quantity,
                },
            )
        cart.add_item(product)
        cart.set_quantity(product_id, quantity)
    return cart


def checkout(
    store_id: int,
    caller,
    items,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    payment_method: str = "cash",
    discount=0,
) -> Sale:
    if caller is None:
        raise UnauthenticatedError("Not authenticated")
    require_store_access(store_id, caller, require_active=True)

    cart = build_cart(store_id, items)
    return complete_sale(
        cart,
        store_id,
        caller,
        customer_name=customer_name,
        customer_phone=customer_phone,
        payment_method=payment_method,
        discount=discount,
    )


def quote(store_id: int, caller, items, discount=0) -> dict:
    """Price a cart without writing anything (POS cart panel)."""
    if caller is None:
        raise UnauthenticatedError("Not authenticated")
    require_store_access(store_id, caller)

    cart = build_cart(store_id, items)
    preview = cart.compute_totals()
    discount = _validate_discount(discount, preview.subtotal + preview.tax_amount)
    totals = cart.compute_totals(discount)
    return {
        "lines": [
            {
                "product_id": line.product.product_id,
                "name": line.product.name,
                "quantity": line.quantity,
                "unit_price": str(line.product.price),
                "tax_rate": str(line.product.tax_rate),
                "line_total": str(line.line_total),
            }
            for line in cart.lines
        ],
        **totals.to_dict(),
    }


def list_sales(store_id: int, caller, limit: int | None = None) -> list[Sale]:
    """Sales history for a store, newest first."""
    require_store_access(store_id, caller)
    query = (
        db.session.query(Sale)
        .filter(Sale.store_id == store_id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def get_sale(sale_id: int, caller) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFoundError("Sale not found")

    allowed = accessible_store_ids(caller)
    if allowed is not None and sale.store_id not in allowed:
        raise SaleNotFoundError("Sale not found")
    return sale

