from datetime import datetime
from unittest import mock

from equitystek_backend.extensions import db
from equitystek_backend.models import MaintenanceRecord, Notification, Receipt, User
from equitystek_backend.services import receipts


class TestAdminAccess:

    def test_non_admin_forbidden(self, client, owner, auth_headers):
        resp = client.get("/api/admin/users", headers=auth_headers(owner))
        assert resp.status_code == 403

    def test_requires_token(self, client):
        assert client.get("/api/admin/stats").status_code == 401

    def test_demoted_admin_token_forbidden(self, client, admin, auth_headers):
        headers = auth_headers(admin)
        admin.role = "owner"
        db.session.commit()

        assert client.get("/api/admin/users", headers=headers).status_code == 403

    def test_deactivated_admin_rejected(self, client, admin, auth_headers):
        headers = auth_headers(admin)
        admin.is_active = False
        db.session.commit()

        assert client.get("/api/admin/stats", headers=headers).status_code == 401


class TestAdminUsers:

    def test_list_includes_sensitive_fields(self, client, admin, owner, auth_headers):
        resp = client.get("/api/admin/users", headers=auth_headers(admin))

        assert resp.status_code == 200
        body = resp.get_json()
        assert len(body) == 2
        assert "stripe_customer_id" in body[0]

    def test_deactivate_user(self, client, admin, owner, auth_headers):
        resp = client.patch(f"/api/admin/users/{owner.id}", json={"is_active": False}, headers=auth_headers(admin))

        assert resp.status_code == 200
        assert db.session.get(User, owner.id).is_active is False

    def test_invalid_role(self, client, admin, owner, auth_headers):
        resp = client.patch(f"/api/admin/users/{owner.id}", json={"role": "overlord"}, headers=auth_headers(admin))
        assert resp.status_code == 400

    def test_reset_password(self, client, admin, owner, auth_headers):
        with mock.patch("equitystek_backend.routes.admin.send_email", return_value=True) as send:
            resp = client.post(f"/api/admin/users/{owner.id}/reset-password", headers=auth_headers(admin))

        body = resp.get_json()
        assert body["success"] is True
        assert body["emailed"] is True
        assert db.session.get(User, owner.id).check_password(body["temporary_password"])
        assert body["temporary_password"] in send.call_args.args[2]

    def test_missing_user(self, client, admin, auth_headers):
        assert client.get("/api/admin/users/999", headers=auth_headers(admin)).status_code == 404


class TestAdminSubscriptions:

    def test_update_price(self, client, admin, owner, plans, subscribe, auth_headers):
        subscription = subscribe(owner, plans["Basic"])

        resp = client.patch(f"/api/admin/subscriptions/{subscription.id}", json={"current_price": "5.00"},
                            headers=auth_headers(admin))

        assert resp.status_code == 200
        assert resp.get_json()["current_price"] == 5.0

    def test_deactivate_mirrors_to_stripe(self, app, client, admin, owner, plans, subscribe, auth_headers):
        app.config["STRIPE_SECRET_KEY"] = "sk_test_123"
        subscription = subscribe(owner, plans["Basic"], stripe_subscription_id="sub_5")

        with mock.patch("stripe.Subscription.modify") as modify:
            resp = client.patch(f"/api/admin/subscriptions/{subscription.id}", json={"is_active": False},
                                headers=auth_headers(admin))

        modify.assert_called_once_with("sub_5", cancel_at_period_end=True)
        assert resp.get_json()["cancel_at_period_end"] is True

    def test_unknown_plan(self, client, admin, owner, plans, subscribe, auth_headers):
        subscription = subscribe(owner, plans["Basic"])
        resp = client.patch(f"/api/admin/subscriptions/{subscription.id}", json={"plan_id": 999},
                            headers=auth_headers(admin))
        assert resp.status_code == 404


class TestAdminRecords:

    def test_update_property(self, client, admin, owner, make_property, auth_headers):
        prop = make_property(owner)
        resp = client.patch(f"/api/admin/properties/{prop.id}", json={"city": "Hobart"}, headers=auth_headers(admin))
        assert resp.get_json()["city"] == "Hobart"

    def test_update_maintenance_status(self, client, admin, owner, make_property, auth_headers):
        prop = make_property(owner)
        record = MaintenanceRecord(property_id=prop.id, title="Fence", category="exterior", cost=400,
                                   completed_date=datetime(2026, 5, 1), status="pending")
        db.session.add(record)
        db.session.commit()

        resp = client.patch(f"/api/admin/maintenance/{record.id}", json={"status": "completed"},
                            headers=auth_headers(admin))
        assert resp.get_json()["status"] == "completed"

        bad = client.patch(f"/api/admin/maintenance/{record.id}", json={"status": "finished"},
                           headers=auth_headers(admin))
        assert bad.status_code == 400

    def test_generate_manual_receipt(self, client, admin, owner, auth_headers):
        resp = client.post("/api/admin/receipts/generate",
                           json={"user_id": owner.id, "amount": "25.50", "description": "Credit adjustment"},
                           headers=auth_headers(admin))

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["payment_method"] == "manual_admin"
        assert body["currency"] == "AUD"
        assert body["amount"] == 25.5

    def test_generate_receipt_requires_fields(self, client, admin, auth_headers):
        resp = client.post("/api/admin/receipts/generate", json={"amount": 1}, headers=auth_headers(admin))
        assert resp.status_code == 400

    def test_broadcast(self, client, admin, owner, make_user, auth_headers):
        make_user()

        resp = client.post("/api/admin/notifications/broadcast", json={"message": "Maintenance window"},
                           headers=auth_headers(admin))

        assert resp.status_code == 201
        assert resp.get_json()["recipients"] == 3
        assert Notification.query.count() == 3


class TestAdminStats:

    def test_totals(self, client, admin, owner, plans, subscribe, make_property, auth_headers):
        subscribe(owner, plans["Basic"], property_count=2)
        make_property(owner)
        make_property(owner, property_type="townhouse")
        receipts.create_receipt(owner.id, 14.98, "Basic Subscription")
        receipts.create_receipt(owner.id, 5, "Failed charge", payment_status="failed")

        body = client.get("/api/admin/stats", headers=auth_headers(admin)).get_json()

        assert body["total_users"] == 2
        assert body["total_properties"] == 2
        assert body["active_subscriptions"] == 1
        assert body["total_revenue"] == 14.98
        assert body["receipt_count"] == Receipt.query.count() == 2
        assert body["properties_by_type"] == {"single_family": 1, "townhouse": 1}
        assert body["maintenance_by_category"] == {}
