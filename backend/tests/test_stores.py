# Overview: Pytest coverage for store scoping, store edits and dashboards.

"""
Store Tests

Verifies:
- Each role sees only the stores it is related to
- The caller's working store (owned, else assigned)
- Owners edit contact details; admins deactivate
- Dashboard counts and today's takings
"""

from datetime import datetime
from decimal import Decimal

import pytest
from kirana.models import Product, Store
from kirana.services import reporting_service, store_service
from kirana.services.cart import Cart
from kirana.services.permission_service import PermissionDeniedError
from kirana.services.sales_service import complete_sale
from kirana.services.session_service import Caller
from kirana.services.store_access import StoreAccessError, require_store_access
from kirana.services.store_service import StoreError


class TestStoreScoping:
    def test_admin_sees_all_newest_first(self, db_session, admin_caller, store, other_store):
        stores = store_service.list_stores(admin_caller)
        assert [s.name for s in stores] == ["Gupta Provisions", "Sharma General Store"]

    def test_owner_sees_own_store(self, db_session, owner_caller, store, other_store):
        assert [s.id for s in store_service.list_stores(owner_caller)] == [store.id]

    def test_cashier_sees_assigned_store(self, db_session, cashier_caller, store, other_store):
        assert [s.id for s in store_service.list_stores(cashier_caller)] == [store.id]

    def test_roleless_user_sees_nothing(self, db_session, make_user, store):
        caller = Caller.for_user(make_user("nobody@shop.in"))
        assert store_service.list_stores(caller) == []
        with pytest.raises(StoreAccessError):
            require_store_access(store.id, caller)

    def test_unknown_and_foreign_stores_look_the_same(self, db_session, owner_caller, other_store):
        with pytest.raises(StoreAccessError) as foreign:
            store_service.get_store(other_store.id, owner_caller)
        with pytest.raises(StoreAccessError) as missing:
            store_service.get_store(424242, owner_caller)
        assert str(foreign.value) == str(missing.value) == "Store not found"

    def test_inactive_store_refused_when_active_required(self, db_session, owner_caller, store):
        store.is_active = False
        db_session.commit()

        assert require_store_access(store.id, owner_caller).id == store.id
        with pytest.raises(StoreAccessError) as exc:
            require_store_access(store.id, owner_caller, require_active=True)
        assert exc.value.not_found is False


class TestWorkingStore:
    def test_owner_working_store(self, db_session, owner_caller, store):
        assert store_service.get_owned_store(owner_caller).id == store.id

    def test_cashier_working_store(self, db_session, cashier_caller, store):
        assert store_service.get_owned_store(cashier_caller).id == store.id

    def test_admin_without_store(self, db_session, admin_caller, store):
        assert store_service.get_owned_store(admin_caller) is None

    def test_deactivated_store_is_not_working_store(self, db_session, owner_caller, store):
        store.is_active = False
        db_session.commit()
        assert store_service.get_owned_store(owner_caller) is None


class TestStoreEdits:
    def test_owner_updates_contact_details(self, db_session, owner_caller, store):
        updated = store_service.update_store(store.id, owner_caller, {
            "phone": " 9123456780 ",
            "address": "",
        })
        assert updated.phone == "9123456780"
        assert updated.address is None
        assert updated.name == "Sharma General Store"

    @pytest.mark.parametrize("patch", [{"owner_id": 1}, {"is_active": False}, {"name": "  "}])
    def test_rejected_patches(self, db_session, owner_caller, store, patch):
        with pytest.raises(StoreError):
            store_service.update_store(store.id, owner_caller, patch)

    def test_deactivate_and_reactivate(self, db_session, admin_caller, store):
        assert store_service.set_store_active(store.id, admin_caller, False).is_active is False
        assert store_service.set_store_active(store.id, admin_caller, True).is_active is True

    def test_create_store_requires_name(self, db_session, owner_user):
        with pytest.raises(StoreError):
            store_service.create_store(name=" ", owner_id=owner_user.id)

    def test_delete_store_refuses_stores_with_products(self, db_session, store, rice):
        with pytest.raises(StoreError):
            store_service.delete_store(store.id)
        assert db_session.get(Store, store.id) is not None

    def test_delete_empty_store(self, db_session, store):
        store_id = store.id
        store_service.delete_store(store_id)
        assert db_session.get(Store, store_id) is None


class TestDashboard:
    def test_counts_and_today_total(self, db_session, owner_caller, cashier_caller, store, rice, soap):
        empty = reporting_service.store_dashboard(store.id, owner_caller)
        assert empty["total_products"] == 2
        assert empty["low_stock_products"] == 1
        assert empty["today_sales_total"] == "0.00"
        assert empty["today_sales_count"] == 0

        cart = Cart()
        cart.add_item(rice)
        cart.set_quantity(rice.id, 2)
        complete_sale(cart, store.id, cashier_caller)

        dashboard = reporting_service.store_dashboard(store.id, owner_caller)
        assert dashboard["today_sales_total"] == "210.00"
        assert dashboard["today_sales_count"] == 1
        assert dashboard["store"]["name"] == "Sharma General Store"

    def test_other_days_excluded(self, db_session, owner_caller, cashier_caller, store, rice):
        cart = Cart()
        cart.add_item(rice)
        complete_sale(cart, store.id, cashier_caller)

        dashboard = reporting_service.store_dashboard(
            store.id, owner_caller, now=datetime(2001, 1, 1, 12, 0)
        )
        assert dashboard["today_sales_count"] == 0
        assert dashboard["as_of"] == "2001-01-01T12:00:00Z"

    def test_stock_at_minimum_counts_as_low(self, db_session, owner_caller, store, rice):
        rice.stock_quantity = rice.min_stock_level
        db_session.commit()
        assert reporting_service.store_dashboard(store.id, owner_caller)["low_stock_products"] == 1

    def test_admin_overview(self, db_session, admin_caller, store, other_store):
        other_store.is_active = False
        db_session.commit()
        assert reporting_service.admin_overview(admin_caller) == {"total_stores": 2, "active_stores": 1}

    def test_overview_admin_only(self, db_session, owner_caller):
        with pytest.raises(PermissionDeniedError):
            reporting_service.admin_overview(owner_caller)


class TestStoreRoutes:
    def test_list(self, client, db_session, owner_headers, store, other_store):
        resp = client.get("/api/stores", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1
        assert resp.json["items"][0]["gst_number"] == "27ABCDE1234F1Z5"

    def test_current(self, client, db_session, cashier_headers, store):
        resp = client.get("/api/stores/current", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["id"] == store.id

    def test_current_without_store(self, client, db_session, admin_headers):
        resp = client.get("/api/stores/current", headers=admin_headers)
        assert resp.status_code == 404

    def test_patch(self, client, db_session, owner_headers, store):
        resp = client.patch(f"/api/stores/{store.id}", json={"name": "Sharma Super Mart"}, headers=owner_headers)
        assert resp.status_code == 200
        assert resp.json["name"] == "Sharma Super Mart"

    def test_patch_foreign_store_is_404(self, client, db_session, owner_headers, other_store):
        resp = client.patch(f"/api/stores/{other_store.id}", json={"name": "Mine"}, headers=owner_headers)
        assert resp.status_code == 404

    def test_dashboard(self, client, db_session, owner_headers, store, rice, soap):
        resp = client.get(f"/api/stores/{store.id}/dashboard", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.json["total_products"] == 2
        assert resp.json["low_stock_products"] == 1

    def test_admin_deactivates(self, client, db_session, admin_headers, store):
        resp = client.post(f"/api/stores/{store.id}/deactivate", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["is_active"] is False

    def test_sales_blocked_at_deactivated_store(self, client, db_session, admin_headers, cashier_headers, store, rice):
        client.post(f"/api/stores/{store.id}/deactivate", headers=admin_headers)

        resp = client.post("/api/sales/checkout", json={
            "store_id": store.id,
            "items": [{"product_id": rice.id, "quantity": 1}],
        }, headers=cashier_headers)

        assert resp.status_code == 403
        db_session.expire_all()
        assert db_session.get(Product, rice.id).stock_quantity == 10
