"""
Invoice rendering

Read-only projection of a completed sale joined with its store and items.
build_invoice() returns plain data (served as JSON); render_invoice_html()
feeds the same data through templates/invoice.html for printing.
"""
from __future__ import annotations

from flask import render_template

from ..extensions import db
from ..models import Sale
from ..money import ZERO, format_inr, money_str, to_money
from .store_access import accessible_store_ids
from kirana.time_utils import to_iso_date, to_utc_z

INVOICE_FOOTER = "Thank you for your business!"


class InvoiceNotFoundError(Exception):
    pass


def _load_sale(sale_id: int, caller) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise InvoiceNotFoundError("Invoice not found")

    allowed = accessible_store_ids(caller)
    if allowed is not None and sale.store_id not in allowed:
        raise InvoiceNotFoundError("Invoice not found")
    return sale


def build_invoice(sale_id: int, caller) -> dict:
    """
    Project a sale into invoice form.

    discount_amount is None unless the sale carried a discount, so
    renderers can omit the line.
    """
    sale = _load_sale(sale_id, caller)
    store = sale.store
    discount = to_money(sale.discount_amount)

    return {
        "store": {
            "name": store.name,
            "address": store.address,
            "phone": store.phone,
            "gst_number": store.gst_number,
        },
        "invoice_number": sale.sale_number,
        "date": to_iso_date(sale.created_at.date()) if sale.created_at else None,
        "created_at": to_utc_z(sale.created_at),
        "customer_name": sale.customer_name,
        "customer_phone": sale.customer_phone,
        "items": [
            {
                "product_name": item.product_name,
                "quantity": item.quantity,
                "unit_price": money_str(item.unit_price),
                "tax_rate": str(item.tax_rate),
                "total_price": money_str(item.total_price),
            }
            for item in sale.items
        ],
        "subtotal": money_str(sale.subtotal),
        "tax_amount": money_str(sale.tax_amount),
        "discount_amount": money_str(discount) if discount > ZERO else None,
        "total_amount": money_str(sale.total_amount),
        "payment_method": sale.payment_method,
        "footer": INVOICE_FOOTER,
    }


def render_invoice_html(sale_id: int, caller) -> str:
    invoice = build_invoice(sale_id, caller)
    return render_template("invoice.html", invoice=invoice, inr=format_inr)
