"""
In-memory cart used by checkout.

Each line keeps the product snapshot captured when it was first added;
stock limits are enforced against that snapshot. The database is only
consulted again when the sale is written (conditional decrement).
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from ..money import HUNDRED, TWOPLACES, ZERO, to_decimal, to_money


class CartError(Exception):
    """Raised for operations on lines that are not in the cart."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStockError(CartError):
    """Requested quantity exceeds available stock."""
    pass


@dataclass(frozen=True)
class ProductSnapshot:
    product_id: int
    name: str
    price: Decimal
    tax_rate: Decimal
    stock_quantity: int

    @classmethod
    def from_product(cls, product) -> "ProductSnapshot":
        return cls(
            product_id=product.id,
            name=product.name,
            price=to_money(product.price),
            tax_rate=to_decimal(product.tax_rate),
            stock_quantity=int(product.stock_quantity or 0),
        )


@dataclass
class CartLine:
    product: ProductSnapshot
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return to_money(self.product.price * self.quantity)

    @property
    def line_tax(self) -> Decimal:
        return self.product.price * self.quantity * self.product.tax_rate / HUNDRED


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal

    def to_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "tax_amount": str(self.tax_amount),
            "discount_amount": str(self.discount_amount),
            "total_amount": str(self.total_amount),
        }


class Cart:
    """Mapping of product id -> CartLine, in insertion order."""

    def __init__(self):
        self._lines: dict[int, CartLine] = {}

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, product_id) -> bool:
        return product_id in self._lines

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    def quantity_of(self, product_id: int) -> int:
        line = self._lines.get(product_id)
        return line.quantity if line else 0

    def add_item(self, product) -> CartLine:
        """
        Add one unit of `product` (a Product row or ProductSnapshot).

        Raises InsufficientStockError, leaving the cart unchanged, when the
        new quantity would exceed the snapshot's stock.
        For a line already in the cart the limit is the stock captured on
        its first add; the stock on `product` is not consulted again.
        """
        snapshot = product if isinstance(product, ProductSnapshot) else ProductSnapshot.from_product(product)
        line = self._lines.get(snapshot.product_id)

        if line is not None:
            if line.quantity + 1 > line.product.stock_quantity:
                raise InsufficientStockError(
                    "Not enough stock available",
                    details={
                        "product_id": line.product.product_id,
                        "requested": line.quantity + 1,
                        "available": line.product.stock_quantity,
                    },
                )
            line.quantity += 1
            return line

        if snapshot.stock_quantity < 1:
            raise InsufficientStockError(
                "Product out of stock",
                details={"product_id": snapshot.product_id, "requested": 1, "available": snapshot.stock_quantity},
            )

        line = CartLine(product=snapshot, quantity=1)
        self._lines[snapshot.product_id] = line
        return line

    def set_quantity(self, product_id: int, quantity: int) -> int:
        """
        Set a line's quantity, clamped to [0, snapshot stock].

        A clamped quantity of 0 removes the line. Returns the stored quantity.
        """
        line = self._lines.get(product_id)
        if line is None:
            raise CartError("Product is not in the cart", details={"product_id": product_id})

        clamped = max(0, min(int(quantity), line.product.stock_quantity))
        if clamped <= 0:
            del self._lines[product_id]
            return 0

        line.quantity = clamped
        return clamped

    def remove_item(self, product_id: int) -> None:
        self._lines.pop(product_id, None)

    def clear(self) -> None:
        self._lines.clear()

    def compute_totals(self, discount=0) -> CartTotals:
        """
        subtotal = sum(price * qty)
        tax = sum(price * qty * tax_rate / 100), rounded half-up to paise
        total = subtotal + tax - discount
        """
        discount = to_money(discount)
        subtotal = sum((line.product.price * line.quantity for line in self._lines.values()), ZERO)
        raw_tax = sum((line.line_tax for line in self._lines.values()), Decimal("0"))
        tax = raw_tax.quantize(TWOPLACES, rounding=ROUND_HALF_UP)
        subtotal = subtotal.quantize(TWOPLACES, rounding=ROUND_HALF_UP)
        return CartTotals(
            subtotal=subtotal,
            tax_amount=tax,
            discount_amount=discount,
            total_amount=subtotal + tax - discount,
        )
