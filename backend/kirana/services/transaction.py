# Overview: Transaction boundary helpers shared by the service layer.

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db


class PersistenceError(Exception):
    """
    A database call failed (constraint violation, lock, lost connection).

    Carries the driver message so routes can surface it. Never retried.
    """
    def __init__(self, message: str):
        super().__init__(message)


def _driver_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


def run_in_transaction(func):
    """
    Run func() and commit once; roll back on any exception.

    SQLAlchemy errors are re-raised as PersistenceError, domain errors
    propagate unchanged. There is no retry: a failed unit of work leaves
    no rows behind.
    """
    try:
        result = func()
        db.session.commit()
        return result
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(_driver_message(exc)) from exc
    except Exception:
        db.session.rollback()
        raise
