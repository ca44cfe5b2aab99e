from __future__ import annotations

from ..extensions import db
from kirana.time_utils import to_utc_z


class Store(db.Model):
    """
    A retail store owned by a store_owner user.

    Created once by the provisioning flow. Stores are deactivated
    (is_active=False), never hard-deleted, except when provisioning
    compensates a half-created store.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.Index("ix_stores_owner_active", "owner_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)
    gst_number = db.Column(db.String(32), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    owner = db.relationship("User", backref=db.backref("owned_stores", lazy=True))

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r} owner_id={self.owner_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "owner_id": self.owner_id,
            "phone": self.phone,
            "address": self.address,
            "gst_number": self.gst_number,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
