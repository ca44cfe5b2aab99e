# Overview: Service-layer operations for dashboards; read-only aggregates over stores, products and sales.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func

from kirana.extensions import db
from kirana.models import Product, Sale, Store, ROLE_ADMIN
from kirana.money import money_str, to_money
from kirana.services.permission_service import require_any_role
from kirana.services.store_access import require_store_access
from kirana.time_utils import start_of_day, utcnow, to_utc_z


def store_dashboard(store_id: int, caller, now: datetime | None = None) -> dict:
    """
    Headline numbers for one store.

    "Today" is the UTC calendar day containing `now`.
    """
    store = require_store_access(store_id, caller)
    now = now or utcnow()
    day_start = start_of_day(now)
    day_end = day_start + timedelta(days=1)

    total_products = (
        db.session.query(func.count(Product.id))
        .filter(Product.store_id == store_id)
        .scalar()
    ) or 0

    low_stock = (
        db.session.query(func.count(Product.id))
        .filter(
            Product.store_id == store_id,
            Product.stock_quantity <= Product.min_stock_level,
        )
        .scalar()
    ) or 0

    today_total, today_count = (
        db.session.query(func.sum(Sale.total_amount), func.count(Sale.id))
        .filter(
            Sale.store_id == store_id,
            Sale.created_at >= day_start,
            Sale.created_at < day_end,
        )
        .one()
    )

    return {
        "store": store.to_dict(),
        "total_products": int(total_products),
        "low_stock_products": int(low_stock),
        "today_sales_total": money_str(to_money(today_total or 0)),
        "today_sales_count": int(today_count or 0),
        "as_of": to_utc_z(now),
    }


def admin_overview(caller) -> dict:
    require_any_role(caller, ROLE_ADMIN, resource="admin.overview")

    total_stores = db.session.query(func.count(Store.id)).scalar() or 0
    active_stores = (
        db.session.query(func.count(Store.id))
        .filter(Store.is_active.is_(True))
        .scalar()
    ) or 0

    return {
        "total_stores": int(total_stores),
        "active_stores": int(active_stores),
    }
