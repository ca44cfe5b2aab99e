"""
Store Owner Provisioning

WHY: A store owner is three rows that only make sense together: an
identity, the store it owns and its store_owner role. They are created
by an admin in one logical operation, run as a saga:

1. create identity (email confirmed)   undo: delete identity
2. insert store owned by it            undo: delete store
3. assign store_owner role             (last step)

Any step failure unwinds the completed steps in reverse order, so a
failed role assignment removes the store and the identity too.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import ROLE_ADMIN, ROLE_STORE_OWNER
from ..validation import ValidationError
from .auth_service import create_user, delete_user
from .permission_service import PermissionDeniedError, assign_role, has_role
from .saga import Saga, SagaError, SagaStep
from .store_service import create_store, delete_store

REQUIRED_FIELDS = ("storeName", "ownerName", "ownerEmail", "ownerPassword")


class RoleCheckError(Exception):
    """The admin role check itself could not be performed."""
    pass


class ProvisioningError(Exception):
    """A provisioning step failed; completed steps were compensated."""
    def __init__(self, message: str, step: str | None = None):
        super().__init__(message)
        self.step = step


def require_admin(user_id: int) -> None:
    """
    Raises:
        RoleCheckError: the role lookup failed
        PermissionDeniedError: the caller is not an admin
    """
    try:
        is_admin = has_role(user_id, ROLE_ADMIN)
    except Exception as exc:
        current_app.logger.error("has_role error: %s", exc)
        db.session.rollback()
        raise RoleCheckError("Role check failed") from exc

    if not is_admin:
        current_app.logger.warning("Provisioning refused: user_id=%s is not an admin", user_id)
        raise PermissionDeniedError("Forbidden")


def _optional(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _validate(payload) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Missing required fields")
    for key in REQUIRED_FIELDS:
        value = payload.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError("Missing required fields")
    return payload


def _build_saga(payload: dict) -> Saga:
    def _create_owner(ctx):
        return create_user(
            email=payload["ownerEmail"],
            password=payload["ownerPassword"],
            full_name=payload["ownerName"],
            phone=_optional(payload, "phone"),
            email_confirmed=True,
        ).id

    def _delete_owner(ctx):
        delete_user(ctx["create_owner"])

    def _create_store(ctx):
        return create_store(
            name=payload["storeName"],
            owner_id=ctx["create_owner"],
            phone=_optional(payload, "phone"),
            address=_optional(payload, "address"),
            gst_number=_optional(payload, "gstNumber"),
        ).id

    def _delete_store(ctx):
        delete_store(ctx["create_store"])

    def _assign_role(ctx):
        return assign_role(ctx["create_owner"], ROLE_STORE_OWNER).id

    return Saga(
        name="provision_store_owner",
        steps=[
            SagaStep("create_owner", _create_owner, compensation=_delete_owner),
            SagaStep("create_store", _create_store, compensation=_delete_store),
            SagaStep("assign_role", _assign_role),
        ],
        logger=current_app.logger,
        reset=db.session.rollback,
    )


def provision_store_owner(caller_user_id: int, payload) -> dict:
    """
    Admin-only: create a store owner identity, their store and role.

    Returns {"owner_id": int, "store_id": int}.

    Raises:
        RoleCheckError, PermissionDeniedError: before anything is created
        ValidationError: required fields missing
        ProvisioningError: a step failed (already compensated)
    """
    require_admin(caller_user_id)
    payload = _validate(payload)

    try:
        context = _build_saga(payload).run({})
    except SagaError as exc:
        raise ProvisioningError(str(exc.cause) or "Provisioning failed", step=exc.step) from exc

    current_app.logger.info("Store created successfully for: %s", payload["ownerEmail"])
    return {"owner_id": context["create_owner"], "store_id": context["create_store"]}
