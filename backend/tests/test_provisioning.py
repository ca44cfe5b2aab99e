# Overview: Pytest coverage for admin-only store owner provisioning.

"""
Provisioning Tests

Verifies POST /create-store-owner:
- Only admins may provision (403 otherwise, nothing created)
- Auth, method and payload errors map to 401/405/400
- A failing step unwinds the steps before it, even when an undo fails
"""

import pytest
from kirana.models import Store, User, UserRole, ROLE_STORE_OWNER
from kirana.services import provisioning_service
from kirana.services.auth_service import IdentityError
from kirana.services.store_service import StoreError

ENDPOINT = "/create-store-owner"


def owner_payload(**overrides):
    payload = {
        "storeName": "Verma Kirana",
        "ownerName": "Sunita Verma",
        "ownerEmail": "sunita@verma.test",
        "ownerPassword": "Str0ng!Pass",
        "phone": "9000000001",
        "address": "4 Station Road, Nagpur",
        "gstNumber": "27VERMA1234F1Z5",
    }
    payload.update(overrides)
    return payload


def counts(db_session):
    return (
        db_session.query(User).count(),
        db_session.query(Store).count(),
        db_session.query(UserRole).count(),
    )


class TestProvisioningHappyPath:
    def test_admin_creates_owner_store_and_role(self, client, db_session, admin_headers):
        resp = client.post(ENDPOINT, json=owner_payload(), headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["success"] is True
        owner_id = resp.json["owner_id"]

        db_session.expire_all()
        owner = db_session.get(User, owner_id)
        assert owner.email == "sunita@verma.test"
        assert owner.full_name == "Sunita Verma"
        assert owner.email_confirmed is True

        store = db_session.query(Store).filter_by(owner_id=owner_id).one()
        assert store.name == "Verma Kirana"
        assert store.gst_number == "27VERMA1234F1Z5"
        assert store.is_active is True

        roles = {r.role for r in db_session.query(UserRole).filter_by(user_id=owner_id)}
        assert roles == {ROLE_STORE_OWNER}

    def test_optional_fields_may_be_omitted(self, client, db_session, admin_headers):
        payload = owner_payload()
        for key in ("phone", "address", "gstNumber"):
            payload.pop(key)

        resp = client.post(ENDPOINT, json=payload, headers=admin_headers)

        assert resp.status_code == 200
        store = db_session.query(Store).filter_by(name="Verma Kirana").one()
        assert store.phone is None
        assert store.gst_number is None

    def test_new_owner_can_log_in(self, client, db_session, admin_headers):
        client.post(ENDPOINT, json=owner_payload(), headers=admin_headers)

        resp = client.post("/api/auth/login", json={
            "email": "sunita@verma.test",
            "password": "Str0ng!Pass",
        })
        assert resp.status_code == 200
        assert resp.json["user"]["roles"] == [ROLE_STORE_OWNER]


class TestProvisioningRejections:
    def test_non_admin_forbidden_and_nothing_created(self, client, db_session, owner_headers):
        before = counts(db_session)

        resp = client.post(ENDPOINT, json=owner_payload(), headers=owner_headers)

        assert resp.status_code == 403
        assert resp.json == {"error": "Forbidden"}
        assert counts(db_session) == before
        assert db_session.query(User).filter_by(email="sunita@verma.test").first() is None

    def test_cashier_forbidden(self, client, db_session, cashier_headers):
        resp = client.post(ENDPOINT, json=owner_payload(), headers=cashier_headers)
        assert resp.status_code == 403

    def test_missing_token(self, client, db_session):
        resp = client.post(ENDPOINT, json=owner_payload())
        assert resp.status_code == 401
        assert "error" in resp.json

    def test_invalid_token(self, client, db_session):
        resp = client.post(ENDPOINT, json=owner_payload(), headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    @pytest.mark.parametrize("missing", ["storeName", "ownerName", "ownerEmail", "ownerPassword"])
    def test_missing_required_field(self, client, db_session, admin_headers, missing):
        before = counts(db_session)
        payload = owner_payload()
        payload.pop(missing)

        resp = client.post(ENDPOINT, json=payload, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json == {"error": "Missing required fields"}
        assert counts(db_session) == before

    def test_blank_required_field(self, client, db_session, admin_headers):
        resp = client.post(ENDPOINT, json=owner_payload(storeName="  "), headers=admin_headers)
        assert resp.status_code == 400

    @pytest.mark.parametrize("method", ["get", "put", "patch", "delete"])
    def test_other_methods_not_allowed(self, client, db_session, method):
        resp = getattr(client, method)(ENDPOINT)
        assert resp.status_code == 405
        assert resp.json == {"error": "Method not allowed"}

    def test_preflight(self, client, db_session):
        resp = client.options(ENDPOINT)
        assert resp.status_code == 200
        assert resp.headers["Access-Control-Allow-Origin"] == "*"
        assert "authorization" in resp.headers["Access-Control-Allow-Headers"]

    def test_role_check_failure_is_500(self, client, db_session, admin_headers, monkeypatch):
        def broken(user_id, role):
            raise RuntimeError("db down")

        monkeypatch.setattr(provisioning_service, "has_role", broken)
        before = counts(db_session)

        resp = client.post(ENDPOINT, json=owner_payload(), headers=admin_headers)

        assert resp.status_code == 500
        assert resp.json == {"error": "Role check failed"}
        assert counts(db_session) == before


class TestProvisioningCompensation:
    def test_duplicate_email_creates_nothing(self, client, db_session, admin_headers, owner_user):
        before = counts(db_session)

        resp = client.post(ENDPOINT, json=owner_payload(ownerEmail=owner_user.email), headers=admin_headers)

        assert resp.status_code == 400
        assert "already been registered" in resp.json["error"]
        assert counts(db_session) == before

    def test_weak_password_creates_nothing(self, client, db_session, admin_headers):
        before = counts(db_session)
        resp = client.post(ENDPOINT, json=owner_payload(ownerPassword="short"), headers=admin_headers)
        assert resp.status_code == 400
        assert counts(db_session) == before

    def test_store_failure_deletes_identity(self, client, db_session, admin_headers, monkeypatch):
        def failing_store(**kwargs):
            raise StoreError("store insert failed")

        monkeypatch.setattr(provisioning_service, "create_store", failing_store)
        before = counts(db_session)

        resp = client.post(ENDPOINT, json=owner_payload(), headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json == {"error": "store insert failed"}
        assert db_session.query(User).filter_by(email="sunita@verma.test").first() is None
        assert counts(db_session) == before

    def test_store_failure_with_failing_cleanup_still_400(self, client, db_session, admin_headers, monkeypatch):
        def failing_store(**kwargs):
            raise StoreError("store insert failed")

        def failing_delete(user_id):
            raise IdentityError("cannot delete")

        monkeypatch.setattr(provisioning_service, "create_store", failing_store)
        monkeypatch.setattr(provisioning_service, "delete_user", failing_delete)

        resp = client.post(ENDPOINT, json=owner_payload(), headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json == {"error": "store insert failed"}
        # The undo failed, so the identity is left behind
        assert db_session.query(User).filter_by(email="sunita@verma.test").first() is not None
        assert db_session.query(Store).filter_by(name="Verma Kirana").first() is None

    def test_role_failure_removes_store_and_identity(self, client, db_session, admin_headers, monkeypatch):
        def failing_assign(user_id, role):
            raise RuntimeError("role insert failed")

        monkeypatch.setattr(provisioning_service, "assign_role", failing_assign)
        before = counts(db_session)

        resp = client.post(ENDPOINT, json=owner_payload(), headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json == {"error": "role insert failed"}
        assert db_session.query(Store).filter_by(name="Verma Kirana").first() is None
        assert db_session.query(User).filter_by(email="sunita@verma.test").first() is None
        assert counts(db_session) == before


class TestProvisioningService:
    def test_returns_owner_and_store_ids(self, db_session, admin_user):
        result = provisioning_service.provision_store_owner(admin_user.id, owner_payload())
        store = db_session.get(Store, result["store_id"])
        assert store.owner_id == result["owner_id"]

    def test_step_name_reported_on_failure(self, db_session, admin_user, monkeypatch):
        def failing_store(**kwargs):
            raise StoreError("nope")

        monkeypatch.setattr(provisioning_service, "create_store", failing_store)

        with pytest.raises(provisioning_service.ProvisioningError) as exc:
            provisioning_service.provision_store_owner(admin_user.id, owner_payload())
        assert exc.value.step == "create_store"
