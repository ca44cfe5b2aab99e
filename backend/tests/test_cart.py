# Overview: Pytest coverage for the in-memory cart and its totals.

"""
Cart Tests

Verifies:
- Quantities never exceed the stock captured when a line was first added
- set_quantity clamps and removes
- Totals: subtotal + tax - discount, tax rounded half-up to paise
- Money coercion rejects NaN and Infinity
"""

from decimal import Decimal

import pytest
from kirana.money import to_decimal, to_money
from kirana.services.cart import Cart, CartError, InsufficientStockError, ProductSnapshot


def snapshot(product_id=1, price="100.00", tax_rate="5", stock=10, name="Rice"):
    return ProductSnapshot(
        product_id=product_id,
        name=name,
        price=Decimal(price),
        tax_rate=Decimal(tax_rate),
        stock_quantity=stock,
    )


class TestAddItem:
    def test_first_add_inserts_quantity_one(self):
        cart = Cart()
        line = cart.add_item(snapshot())
        assert line.quantity == 1
        assert len(cart) == 1
        assert not cart.is_empty

    def test_repeat_add_increments(self):
        cart = Cart()
        cart.add_item(snapshot())
        cart.add_item(snapshot())
        assert cart.quantity_of(1) == 2

    def test_add_beyond_stock_raises_and_leaves_cart_unchanged(self):
        cart = Cart()
        product = snapshot(stock=2)
        cart.add_item(product)
        cart.add_item(product)

        with pytest.raises(InsufficientStockError) as exc:
            cart.add_item(product)

        assert cart.quantity_of(1) == 2
        assert exc.value.details["available"] == 2

    def test_out_of_stock_product_cannot_be_added(self):
        cart = Cart()
        with pytest.raises(InsufficientStockError):
            cart.add_item(snapshot(stock=0))
        assert cart.is_empty

    def test_limit_uses_snapshot_from_first_add(self):
        """A later, larger stock figure for the same product is ignored."""
        cart = Cart()
        cart.add_item(snapshot(stock=1))
        with pytest.raises(InsufficientStockError):
            cart.add_item(snapshot(stock=50))
        assert cart.quantity_of(1) == 1

    def test_quantity_never_exceeds_snapshot(self):
        cart = Cart()
        product = snapshot(stock=5)
        for _ in range(20):
            try:
                cart.add_item(product)
            except InsufficientStockError:
                pass
            assert cart.quantity_of(1) <= 5
        assert cart.quantity_of(1) == 5


class TestSetQuantity:
    def test_clamps_to_stock(self):
        cart = Cart()
        cart.add_item(snapshot(stock=4))
        assert cart.set_quantity(1, 9) == 4
        assert cart.quantity_of(1) == 4

    def test_zero_removes_line(self):
        cart = Cart()
        cart.add_item(snapshot())
        assert cart.set_quantity(1, 0) == 0
        assert 1 not in cart
        assert cart.is_empty

    def test_negative_removes_line(self):
        cart = Cart()
        cart.add_item(snapshot())
        cart.set_quantity(1, -3)
        assert cart.is_empty

    def test_unknown_product_raises(self):
        cart = Cart()
        with pytest.raises(CartError):
            cart.set_quantity(42, 1)


class TestRemoveAndClear:
    def test_remove_item(self):
        cart = Cart()
        cart.add_item(snapshot(product_id=1))
        cart.add_item(snapshot(product_id=2))
        cart.remove_item(1)
        assert [line.product.product_id for line in cart.lines] == [2]

    def test_remove_missing_is_noop(self):
        cart = Cart()
        cart.remove_item(7)
        assert len(cart) == 0

    def test_clear(self):
        cart = Cart()
        cart.add_item(snapshot(product_id=1))
        cart.add_item(snapshot(product_id=2))
        cart.clear()
        assert cart.is_empty


class TestTotals:
    def test_single_line_example(self):
        cart = Cart()
        product = snapshot(price="100", tax_rate="5", stock=10)
        cart.add_item(product)
        cart.add_item(product)

        totals = cart.compute_totals(0)

        assert totals.subtotal == Decimal("200.00")
        assert totals.tax_amount == Decimal("10.00")
        assert totals.total_amount == Decimal("210.00")

    def test_mixed_tax_rates(self):
        cart = Cart()
        cart.add_item(snapshot(product_id=1, price="100.00", tax_rate="5"))
        cart.set_quantity(1, 2)
        cart.add_item(snapshot(product_id=2, price="25.50", tax_rate="18"))
        cart.set_quantity(2, 3)

        totals = cart.compute_totals()

        assert totals.subtotal == Decimal("276.50")
        assert totals.tax_amount == Decimal("23.77")
        assert totals.total_amount == Decimal("300.27")

    def test_tax_rounds_half_up(self):
        cart = Cart()
        cart.add_item(snapshot(price="0.10", tax_rate="5"))
        assert cart.compute_totals().tax_amount == Decimal("0.01")

    def test_total_is_exact_with_discount(self):
        cart = Cart()
        cart.add_item(snapshot(price="49.99", tax_rate="12", stock=3))
        cart.set_quantity(1, 3)

        totals = cart.compute_totals("7.25")

        assert totals.total_amount == totals.subtotal + totals.tax_amount - totals.discount_amount
        assert totals.discount_amount == Decimal("7.25")

    def test_empty_cart_totals_are_zero(self):
        totals = Cart().compute_totals()
        assert totals.subtotal == Decimal("0.00")
        assert totals.tax_amount == Decimal("0.00")
        assert totals.total_amount == Decimal("0.00")

    def test_to_dict_uses_strings(self):
        cart = Cart()
        cart.add_item(snapshot())
        assert cart.compute_totals().to_dict() == {
            "subtotal": "100.00",
            "tax_amount": "5.00",
            "discount_amount": "0.00",
            "total_amount": "105.00",
        }


class TestMoneyCoercion:
    @pytest.mark.parametrize("value", ["NaN", "sNaN", "Infinity", "-Infinity", "inf", float("nan")])
    def test_non_finite_values_rejected(self, value):
        with pytest.raises(ValueError):
            to_money(value)
        with pytest.raises(ValueError):
            to_decimal(value)

    def test_rounds_half_up(self):
        assert to_money("2.345") == Decimal("2.35")
        assert to_money(" 10 ") == Decimal("10.00")
        assert to_decimal("5.125") == Decimal("5.125")
