# Overview: Service-layer operations for roles; encapsulates business logic and database work.

"""
Role Checking

WHY: Three fixed roles decide what a caller may do.
- admin: provisions stores and store owners, sees every store
- store_owner: manages the catalog and sales of the stores they own
- cashier: rings up sales at the store they are assigned to

DESIGN PRINCIPLES:
- Fail closed: deny unless the role row exists
- Denials are logged (current_app.logger) with the path that was refused
"""

from flask import current_app

from ..extensions import db
from ..models import UserRole, APP_ROLES


class PermissionDeniedError(Exception):
    """Raised when the caller lacks a required role."""
    pass


class RoleError(ValueError):
    """Raised for unknown role names."""
    pass


def _check_role_name(role: str) -> None:
    if role not in APP_ROLES:
        raise RoleError(f"Unknown role: {role}")


def has_role(user_id: int, role: str) -> bool:
    """
    Boolean role predicate.

    Raises RoleError for an unknown role name; database errors propagate
    so callers can tell "no" apart from "could not check".
    """
    _check_role_name(role)
    row = (
        db.session.query(UserRole.id)
        .filter(UserRole.user_id == user_id, UserRole.role == role)
        .first()
    )
    return row is not None


def get_user_roles(user_id: int) -> set[str]:
    rows = db.session.query(UserRole.role).filter(UserRole.user_id == user_id).all()
    return {role for (role,) in rows}


def assign_role(user_id: int, role: str) -> UserRole:
    """Assign role to user (idempotent). Commits."""
    _check_role_name(role)

    existing = db.session.query(UserRole).filter_by(user_id=user_id, role=role).first()
    if existing:
        return existing

    user_role = UserRole(user_id=user_id, role=role)
    db.session.add(user_role)
    db.session.commit()
    return user_role


def revoke_role(user_id: int, role: str) -> bool:
    _check_role_name(role)
    deleted = db.session.query(UserRole).filter_by(user_id=user_id, role=role).delete()
    db.session.commit()
    return bool(deleted)


def require_any_role(caller, *roles: str, resource: str | None = None) -> None:
    """
    Raise PermissionDeniedError unless the caller holds one of `roles`.

    `caller` is a session_service.Caller.
    """
    if caller.roles & set(roles):
        return

    current_app.logger.warning(
        "Role check denied: user_id=%s roles=%s required=%s resource=%s",
        caller.user_id,
        sorted(caller.roles),
        list(roles),
        resource,
    )
    raise PermissionDeniedError(f"Requires any of: {', '.join(roles)}")
