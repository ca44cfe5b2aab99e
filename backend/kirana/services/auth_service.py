# Overview: Service-layer operations for identities; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every sale and every store must be attributable to an identity.
Uses bcrypt for password hashing and validates password strength.

Identities are created three ways:
- self sign-up (no role; email unconfirmed)
- provisioning by an admin (store_owner; email confirmed)
- the CLI (any role)

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper/lower/digit/special required
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re
from flask import current_app
from ..extensions import db
from ..models import User, Store
from kirana.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class IdentityError(ValueError):
    """Raised when an identity cannot be created, found or removed."""
    pass


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. A malformed stored hash never matches.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def get_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter(User.email == normalize_email(email)).first()


def create_user(
    email: str,
    password: str,
    full_name: str,
    phone: str | None = None,
    store_id: int | None = None,
    email_confirmed: bool = False,
) -> User:
    """
    Create a new identity with a bcrypt password hash. Commits.

    Raises:
        IdentityError: invalid email, blank name, or email already registered
        PasswordValidationError: password doesn't meet requirements
    """
    email = normalize_email(email)
    if not EMAIL_RE.match(email):
        raise IdentityError("A valid email address is required")

    full_name = (full_name or "").strip()
    if not full_name:
        raise IdentityError("Full name is required")

    if get_user_by_email(email):
        raise IdentityError("A user with this email address has already been registered")

    # Hash password with bcrypt (validates strength automatically)
    password_hash = hash_password(password)

    user = User(
        email=email,
        password_hash=password_hash,
        full_name=full_name,
        phone=phone or None,
        store_id=store_id,
        email_confirmed=email_confirmed,
    )

    db.session.add(user)
    db.session.commit()
    return user


def sign_up(email: str, password: str, full_name: str) -> User:
    """Self-service registration. No role is granted."""
    user = create_user(email=email, password=password, full_name=full_name)
    current_app.logger.info("User signed up: %s", user.email)
    return user


def delete_user(user_id: int) -> None:
    """
    Hard-delete an identity with its roles and sessions. Commits.

    Used by provisioning to undo a half-created store owner; refuses to
    orphan stores that still reference the user.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise IdentityError("User not found")

    owns = db.session.query(Store.id).filter(Store.owner_id == user_id).first()
    if owns:
        raise IdentityError("User still owns a store")

    db.session.delete(user)
    db.session.commit()


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate by email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    With REQUIRE_EMAIL_CONFIRMATION, unconfirmed users are rejected.
    """
    user = (
        db.session.query(User)
        .filter(User.email == normalize_email(email), User.is_active.is_(True))
        .first()
    )

    if not user:
        return None

    if current_app.config.get("REQUIRE_EMAIL_CONFIRMATION") and not user.email_confirmed:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def confirm_email(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise IdentityError("User not found")
    user.email_confirmed = True
    db.session.commit()
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
