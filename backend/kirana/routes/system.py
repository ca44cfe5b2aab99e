# backend/kirana/routes/system.py
"""
System health and version endpoints.

/health probes the tables the till depends on (stores, catalog, sales,
sessions); /version exposes non-sensitive deployment information.
"""

import sys
import time
from flask import Blueprint, current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Product, Sale, SessionToken, Store, User
from kirana.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


def _timed_check(name: str, probe) -> dict:
    """Run probe() and wrap its details with status and latency."""
    start_time = time.time()
    try:
        details = probe()
    except Exception:
        current_app.logger.exception("%s health check failed", name)
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": f"{name} error",
        }
    return {
        "status": "healthy",
        "latency_ms": round((time.time() - start_time) * 1000, 2),
        "details": details,
    }


def _database_probe() -> dict:
    active_stores = (
        db.session.query(func.count(Store.id)).filter(Store.is_active.is_(True)).scalar()
    )
    return {
        "stores": db.session.query(func.count(Store.id)).scalar(),
        "active_stores": active_stores,
        "users": db.session.query(func.count(User.id)).scalar(),
        "products": db.session.query(func.count(Product.id)).scalar(),
        "sales": db.session.query(func.count(Sale.id)).scalar(),
    }


def _session_probe() -> dict:
    active = db.session.query(func.count(SessionToken.id)).filter(
        SessionToken.is_revoked.is_(False)
    ).scalar()

    # Expired but never revoked (could be cleaned up)
    expired = db.session.query(func.count(SessionToken.id)).filter(
        SessionToken.expires_at < utcnow(),
        SessionToken.is_revoked.is_(False),
    ).scalar()

    return {"active_sessions": active, "expired_pending_cleanup": expired}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: All systems healthy
    - 503: One or more systems unhealthy
    """
    start_time = time.time()

    checks = {
        "database": _timed_check("Database", _database_probe),
        "session_service": _timed_check("Session service", _session_probe),
    }
    unhealthy = any(check["status"] == "unhealthy" for check in checks.values())

    return {
        "status": "unhealthy" if unhealthy else "healthy",
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": checks,
    }, 503 if unhealthy else 200


@system_bp.get("/version")
def version():
    """
    Version endpoint for deployment debugging.

    Does NOT expose secret keys, database credentials or internal paths.
    """
    return {
        "name": "kirana-pos",
        "api_version": API_VERSION,
        "environment": "development" if current_app.debug else "production",
        "python_version": sys.version.split()[0],
        "email_confirmation_required": bool(current_app.config.get("REQUIRE_EMAIL_CONFIRMATION")),
        "server_time": to_utc_z(utcnow()),
    }
