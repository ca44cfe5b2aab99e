from __future__ import annotations

from ..extensions import db
from kirana.money import money_str
from kirana.time_utils import to_utc_z

PAYMENT_METHODS = ("cash", "card", "upi", "other")


class Sale(db.Model):
    """
    Completed sale header.

    Written together with its SaleItem rows and the stock decrements in a
    single transaction (see services/sales_service.py).
    total_amount = subtotal + tax_amount - discount_amount.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("store_id", "sale_number", name="uq_sales_store_sale_number"),
        db.Index("ix_sales_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Human-readable number (e.g., "SALE-001-000042")
    sale_number = db.Column(db.String(64), nullable=False)

    customer_name = db.Column(db.String(200), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    payment_method = db.Column(db.String(16), nullable=False, default="cash")

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="completed")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("sales", lazy=True))
    cashier = db.relationship("User")
    items = db.relationship("SaleItem", back_populates="sale", lazy=True, order_by="SaleItem.id")

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "cashier_id": self.cashier_id,
            "sale_number": self.sale_number,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "payment_method": self.payment_method,
            "subtotal": money_str(self.subtotal),
            "tax_amount": money_str(self.tax_amount),
            "discount_amount": money_str(self.discount_amount),
            "total_amount": money_str(self.total_amount),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Line item on a sale. Immutable once written."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Denormalized so invoices survive product renames
    product_name = db.Column(db.String(200), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "tax_rate": str(self.tax_rate) if self.tax_rate is not None else None,
            "total_price": money_str(self.total_price),
            "created_at": to_utc_z(self.created_at),
        }
