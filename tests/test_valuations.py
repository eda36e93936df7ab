from datetime import datetime

import pytest

from equitystek_backend.extensions import db
from equitystek_backend.models import MaintenanceRecord, Notification, Valuation
from equitystek_backend.services.valuation import estimate_valuation


@pytest.fixture
def house(owner, make_property):
    return make_property(owner, square_feet=1500, bedrooms=3, bathrooms=2)


class TestEstimateValuation:

    def test_method_values(self, house):
        values = estimate_valuation(house)

        assert values["comparable_sales_value"] == 350000.0
        assert values["per_square_foot_value"] == 292500.0
        assert values["automated_model_value"] == 345000.0
        assert values["cost_approach_value"] == 375000.0
        assert values["income_approach_value"] == 370000.0
        assert values["maintenance_added_value"] == 0.0
        assert values["equitystek_value"] == 365000.0

    def test_maintenance_adds_value(self, house):
        db.session.add(MaintenanceRecord(property_id=house.id, title="Kitchen", category="kitchen", cost=8000,
                                         completed_date=datetime(2026, 2, 1), estimated_value_added=10000))
        db.session.commit()

        values = estimate_valuation(house)

        assert values["maintenance_added_value"] == 10000.0
        assert values["equitystek_value"] == 375000.0

    def test_missing_attributes_count_as_zero(self, owner, make_property):
        values = estimate_valuation(make_property(owner))
        assert values["equitystek_value"] == 0.0
        assert values["cost_approach_value"] == 10000.0


class TestValuationRoutes:

    def test_no_valuation_yet(self, client, owner, house, auth_headers):
        resp = client.get(f"/api/valuations/{house.id}", headers=auth_headers(owner))
        assert resp.status_code == 404

    def test_estimate_preview_not_saved(self, client, owner, house, auth_headers):
        resp = client.get(f"/api/valuations/{house.id}/estimate", headers=auth_headers(owner))

        assert resp.status_code == 200
        assert resp.get_json()["equitystek_value"] == 365000.0
        assert Valuation.query.count() == 0

    def test_estimate_saved_and_notified(self, client, owner, house, auth_headers):
        resp = client.get(f"/api/valuations/{house.id}/estimate?save=true", headers=auth_headers(owner))

        assert resp.status_code == 201
        latest = client.get(f"/api/valuations/{house.id}", headers=auth_headers(owner)).get_json()
        assert latest["equitystek_value"] == 365000.0

        notice = Notification.query.filter_by(user_id=owner.id, type="valuation_update").one()
        assert "A$365,000.00" in notice.message

    def test_manual_valuation(self, client, owner, house, auth_headers):
        payload = {"property_id": house.id, "equitystek_value": "375000", "cost_approach_value": 380000}

        resp = client.post("/api/valuations", json=payload, headers=auth_headers(owner))

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["equitystek_value"] == 375000.0
        assert body["cost_approach_value"] == 380000.0
        assert body["comparable_sales_value"] is None

    def test_manual_valuation_requires_value(self, client, owner, house, auth_headers):
        resp = client.post("/api/valuations", json={"property_id": house.id}, headers=auth_headers(owner))
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "equitystek_value is required"

    def test_history_newest_first(self, client, owner, house, auth_headers):
        for value in (300000, 310000):
            client.post("/api/valuations", json={"property_id": house.id, "equitystek_value": value},
                        headers=auth_headers(owner))

        resp = client.get(f"/api/valuations/{house.id}/history", headers=auth_headers(owner))

        assert [v["equitystek_value"] for v in resp.get_json()] == [310000.0, 300000.0]

    def test_foreign_property(self, client, make_user, house, auth_headers):
        resp = client.get(f"/api/valuations/{house.id}/estimate", headers=auth_headers(make_user()))
        assert resp.status_code == 403
