from __future__ import annotations

from ..extensions import db
from kirana.time_utils import to_utc_z

# Fixed role vocabulary (mirrors the app_role enum of the hosted schema)
ROLE_ADMIN = "admin"
ROLE_STORE_OWNER = "store_owner"
ROLE_CASHIER = "cashier"
APP_ROLES = (ROLE_ADMIN, ROLE_STORE_OWNER, ROLE_CASHIER)


class User(db.Model):
    """
    Identity record for authentication and attribution.

    Holds the profile fields (full name, phone) alongside credentials.
    Email is the login identifier and is unique system-wide.

    store_id is the store a cashier works at. It is a plain integer,
    not a foreign key, because stores.owner_id already points back at users.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), nullable=False, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    full_name = db.Column(db.String(200), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    store_id = db.Column(db.Integer, nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    email_confirmed = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    roles = db.relationship("UserRole", back_populates="user", cascade="all, delete-orphan", lazy=True)
    session_tokens = db.relationship("SessionToken", back_populates="user", cascade="all, delete-orphan", lazy=True)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "phone": self.phone,
            "store_id": self.store_id,
            "is_active": self.is_active,
            "email_confirmed": self.email_confirmed,
            "roles": sorted(r.role for r in self.roles),
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class UserRole(db.Model):
    """User-Role assignment. One row per (user, role)."""
    __tablename__ = "user_roles"
    __table_args__ = (
        db.UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
        db.CheckConstraint(
            "role IN ('admin', 'store_owner', 'cashier')",
            name="valid_role",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    role = db.Column(db.String(32), nullable=False, index=True)

    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", back_populates="roles")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "role": self.role,
            "assigned_at": to_utc_z(self.assigned_at),
        }


class SessionToken(db.Model):
    """
    Bearer session tokens.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - Absolute and idle timeouts (see Config)
    - Revocable on logout or account deactivation
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    user = db.relationship("User", back_populates="session_tokens")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
