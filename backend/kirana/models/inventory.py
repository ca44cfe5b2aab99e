from __future__ import annotations

from ..extensions import db
from kirana.money import money_str
from kirana.time_utils import to_utc_z, to_iso_date


class Product(db.Model):
    """
    Product master data with on-hand stock.

    Products are scoped to stores via store_id.

    STOCK: stock_quantity is the live on-hand count. It is mutated by
    catalog edits and decremented by completed sales; it never goes below
    zero (CHECK constraint plus the conditional decrement in sales_service).

    SKU is optional but unique within a store when present.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("store_id", "sku", name="uq_products_store_sku"),
        db.Index("ix_products_store_name", "store_id", "name"),
        db.Index("ix_products_store_active", "store_id", "is_active"),
        db.CheckConstraint("stock_quantity >= 0", name="stock_non_negative"),
        db.CheckConstraint("min_stock_level >= 0", name="min_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    name = db.Column(db.String(200), nullable=False)
    sku = db.Column(db.String(100), nullable=True)
    barcode = db.Column(db.String(100), nullable=True, index=True)
    category = db.Column(db.String(100), nullable=True)

    # Rupees, two decimal places
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    cost_price = db.Column(db.Numeric(12, 2), nullable=True, default=0)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=False, default="piece")

    # Percentage, 0-100 (GST slab)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    expiry_date = db.Column(db.Date, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("products", lazy=True))

    @property
    def is_low_stock(self) -> bool:
        return (self.stock_quantity or 0) <= (self.min_stock_level or 0)

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} store_id={self.store_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "sku": self.sku,
            "barcode": self.barcode,
            "category": self.category,
            "price": money_str(self.price),
            "cost_price": money_str(self.cost_price),
            "stock_quantity": self.stock_quantity,
            "min_stock_level": self.min_stock_level,
            "unit": self.unit,
            "tax_rate": str(self.tax_rate) if self.tax_rate is not None else None,
            "expiry_date": to_iso_date(self.expiry_date),
            "is_active": self.is_active,
            "is_low_stock": self.is_low_stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
