from datetime import datetime
from decimal import Decimal
from unittest import mock

import pytest
import stripe

from equitystek_backend.extensions import db
from equitystek_backend.models import Receipt, Subscription
from equitystek_backend.services import billing


@pytest.fixture
def stripe_configured(app):
    app.config["STRIPE_SECRET_KEY"] = "sk_test_123"
    app.config["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
    return app


class TestPlansAndPricing:

    def test_list_plans_cheapest_first(self, client, plans):
        resp = client.get("/api/subscription-plans")

        assert resp.status_code == 200
        body = resp.get_json()
        assert [p["name"] for p in body] == ["Basic", "Professional", "Enterprise"]
        assert body[0]["base_price"] == 9.99
        assert body[2]["max_properties"] is None

    def test_calculate_price_is_public(self, client, plans):
        resp = client.get(f"/api/subscription/calculate-price?planId={plans['Professional'].id}&propertyCount=5")

        assert resp.status_code == 200
        assert resp.get_json() == {"plan_id": plans["Professional"].id, "property_count": 5, "price": 35.95}

    def test_calculate_price_over_limit(self, client, plans):
        resp = client.get(f"/api/subscription/calculate-price?planId={plans['Basic'].id}&propertyCount=4")
        assert resp.status_code == 400
        assert resp.get_json()["max_properties"] == 3

    def test_calculate_price_unknown_plan(self, client, plans):
        resp = client.get("/api/subscription/calculate-price?planId=999&propertyCount=1")
        assert resp.status_code == 404

    def test_initialize_plans_admin_only(self, client, owner, admin, auth_headers):
        assert client.post("/api/initialize-subscription-plans", headers=auth_headers(owner)).status_code == 403

        first = client.post("/api/initialize-subscription-plans", headers=auth_headers(admin))
        second = client.post("/api/initialize-subscription-plans", headers=auth_headers(admin))

        assert first.status_code == 201
        assert second.status_code == 200
        assert len(second.get_json()) == 3


class TestSubscribe:

    def test_no_subscription(self, client, owner, auth_headers):
        resp = client.get("/api/subscription", headers=auth_headers(owner))
        assert resp.status_code == 404

    def test_subscribe_prices_existing_properties(self, client, owner, plans, make_property, auth_headers):
        make_property(owner)
        make_property(owner)

        resp = client.post("/api/subscription", json={"planId": plans["Basic"].id}, headers=auth_headers(owner))

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["property_count"] == 2
        assert body["current_price"] == 14.98
        assert body["plan"]["name"] == "Basic"
        assert "client_secret" not in body

        receipt = Receipt.query.filter_by(user_id=owner.id).one()
        assert receipt.payment_status == "paid"
        assert receipt.type == "subscription"
        assert float(receipt.amount) == 14.98

    def test_subscribe_without_properties_charges_one(self, client, owner, plans, auth_headers):
        resp = client.post("/api/subscription", json={"plan_id": plans["Professional"].id},
                           headers=auth_headers(owner))

        assert resp.get_json()["property_count"] == 1
        assert resp.get_json()["current_price"] == 19.99

    def test_subscribe_over_plan_limit(self, client, owner, plans, make_property, auth_headers):
        for _ in range(4):
            make_property(owner)

        resp = client.post("/api/subscription", json={"plan_id": plans["Basic"].id}, headers=auth_headers(owner))

        assert resp.status_code == 409
        assert Subscription.query.count() == 0
        assert Receipt.query.count() == 0

    def test_switch_plan_keeps_single_subscription(self, client, owner, plans, auth_headers):
        client.post("/api/subscription", json={"plan_id": plans["Basic"].id}, headers=auth_headers(owner))
        resp = client.post("/api/subscription", json={"plan_id": plans["Enterprise"].id},
                           headers=auth_headers(owner))

        assert resp.get_json()["current_price"] == 49.99
        assert Subscription.query.count() == 1
        assert Receipt.query.count() == 1

    def test_unknown_plan(self, client, owner, plans, auth_headers):
        resp = client.post("/api/subscription", json={"plan_id": 999}, headers=auth_headers(owner))
        assert resp.status_code == 404

    def test_subscribe_with_stripe(self, client, owner, plans, stripe_configured, auth_headers):
        with mock.patch("stripe.Customer.create", return_value={"id": "cus_1"}), \
                mock.patch("stripe.PaymentIntent.create",
                           return_value={"id": "pi_1", "client_secret": "pi_1_secret"}) as create_intent:
            resp = client.post("/api/subscription", json={"plan_id": plans["Basic"].id},
                               headers=auth_headers(owner))

        assert resp.status_code == 200
        assert resp.get_json()["client_secret"] == "pi_1_secret"
        assert create_intent.call_args.kwargs["amount"] == 999
        assert create_intent.call_args.kwargs["customer"] == "cus_1"

        receipt = Receipt.query.filter_by(user_id=owner.id).one()
        assert receipt.payment_status == "pending"
        assert receipt.stripe_payment_intent_id == "pi_1"

    def test_stripe_error_rolls_back(self, client, owner, plans, stripe_configured, auth_headers):
        with mock.patch("stripe.Customer.create", side_effect=stripe.StripeError("api down")):
            resp = client.post("/api/subscription", json={"plan_id": plans["Basic"].id},
                               headers=auth_headers(owner))

        assert resp.status_code == 502
        assert Subscription.query.count() == 0


class TestPriceEstimate:

    def test_estimate_for_more_properties(self, client, owner, plans, subscribe, auth_headers):
        subscribe(owner, plans["Basic"])

        resp = client.get("/api/subscription/price-estimate?propertyCount=3", headers=auth_headers(owner))

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["current_price"] == 9.99
        assert body["estimated_price"] == 19.97
        assert body["price_difference"] == 9.98

    def test_estimate_over_limit(self, client, owner, plans, subscribe, auth_headers):
        subscribe(owner, plans["Basic"])
        resp = client.get("/api/subscription/price-estimate?propertyCount=4", headers=auth_headers(owner))
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "plan_limit_exceeded"

    def test_estimate_without_subscription(self, client, owner, auth_headers):
        resp = client.get("/api/subscription/price-estimate?propertyCount=2", headers=auth_headers(owner))
        assert resp.status_code == 404


class TestCancel:

    def test_cancel_at_period_end(self, client, owner, plans, subscribe, auth_headers):
        subscribe(owner, plans["Basic"])

        resp = client.post("/api/subscription/cancel", headers=auth_headers(owner))

        assert resp.status_code == 200
        subscription = resp.get_json()["subscription"]
        assert subscription["cancel_at_period_end"] is True
        assert subscription["is_active"] is True

    def test_cancel_mirrors_to_stripe(self, client, owner, plans, subscribe, stripe_configured, auth_headers):
        subscribe(owner, plans["Basic"], stripe_subscription_id="sub_9")

        with mock.patch("stripe.Subscription.modify") as modify:
            client.post("/api/subscription/cancel", headers=auth_headers(owner))

        modify.assert_called_once_with("sub_9", cancel_at_period_end=True)

    def test_cancel_without_subscription(self, client, owner, auth_headers):
        resp = client.post("/api/subscription/cancel", headers=auth_headers(owner))
        assert resp.status_code == 404


class TestCreateStripeSubscription:

    def test_requires_stripe(self, client, owner, auth_headers):
        resp = client.post("/api/create-subscription", json={"priceId": "price_1"}, headers=auth_headers(owner))
        assert resp.status_code == 503

    def test_requires_price(self, client, owner, stripe_configured, auth_headers):
        resp = client.post("/api/create-subscription", json={}, headers=auth_headers(owner))
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Price ID is required"

    def test_creates_invoice_subscription(self, client, owner, plans, subscribe, stripe_configured, auth_headers):
        subscribe(owner, plans["Professional"], property_count=2)
        remote = {"id": "sub_new", "items": {"data": [{"id": "si_new"}]}}

        with mock.patch("stripe.Customer.create", return_value={"id": "cus_1"}), \
                mock.patch("stripe.Price.retrieve", return_value={"unit_amount": 399, "currency": "aud"}), \
                mock.patch("stripe.PaymentIntent.create", return_value={"id": "pi_2", "client_secret": "sec_2"}), \
                mock.patch("stripe.Subscription.create", return_value=remote) as create_sub:
            resp = client.post("/api/create-subscription", json={"priceId": "price_1"},
                               headers=auth_headers(owner))

        assert resp.status_code == 200
        assert resp.get_json() == {"subscription_id": "sub_new", "client_secret": "sec_2"}

        kwargs = create_sub.call_args.kwargs
        assert kwargs["items"] == [{"price": "price_1", "quantity": 2}]
        assert kwargs["collection_method"] == "send_invoice"
        assert kwargs["days_until_due"] == 30

        subscription = billing.get_subscription(owner.id)
        assert subscription.stripe_subscription_id == "sub_new"
        assert subscription.stripe_subscription_item_id == "si_new"


class TestWebhook:

    def _post(self, client, event):
        with mock.patch("stripe.Webhook.construct_event", return_value=event):
            return client.post("/api/subscription/webhook", data=b"{}",
                               headers={"Stripe-Signature": "t=1,v1=abc"})

    def test_not_configured(self, client):
        resp = client.post("/api/subscription/webhook", data=b"{}")
        assert resp.status_code == 503

    def test_bad_signature(self, client, stripe_configured):
        with mock.patch("stripe.Webhook.construct_event",
                        side_effect=stripe.SignatureVerificationError("bad", "sig")):
            resp = client.post("/api/subscription/webhook", data=b"{}", headers={"Stripe-Signature": "x"})

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "invalid_signature"

    def test_bad_payload(self, client, stripe_configured):
        with mock.patch("stripe.Webhook.construct_event", side_effect=ValueError("bad json")):
            resp = client.post("/api/subscription/webhook", data=b"nope")
        assert resp.get_json()["error"] == "invalid_payload"

    def test_payment_succeeded_marks_receipt_paid(self, client, owner, plans, subscribe, stripe_configured):
        subscribe(owner, plans["Basic"], is_active=False)
        db.session.add(Receipt(user_id=owner.id, receipt_number="ET-20261019-00001", amount=Decimal("9.99"),
                               type="subscription", payment_status="pending", stripe_payment_intent_id="pi_1"))
        db.session.commit()

        resp = self._post(client, {"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1"}}})

        assert resp.get_json() == {"received": True, "handled": True}
        assert Receipt.query.one().payment_status == "paid"
        assert billing.get_subscription(owner.id).is_active is True

    def test_payment_failed_deactivates(self, client, owner, plans, subscribe, stripe_configured):
        subscribe(owner, plans["Basic"])
        db.session.add(Receipt(user_id=owner.id, receipt_number="ET-20261019-00001", amount=Decimal("9.99"),
                               type="subscription", payment_status="pending", stripe_payment_intent_id="pi_1"))
        db.session.commit()

        self._post(client, {"type": "payment_intent.payment_failed", "data": {"object": {"id": "pi_1"}}})

        assert Receipt.query.one().payment_status == "failed"
        assert billing.get_subscription(owner.id).is_active is False

    def test_subscription_updated(self, client, owner, plans, subscribe, stripe_configured):
        owner.stripe_customer_id = "cus_1"
        subscribe(owner, plans["Basic"])
        remote = {
            "id": "sub_1",
            "customer": "cus_1",
            "status": "active",
            "cancel_at_period_end": True,
            "current_period_end": 1767225600,
        }

        self._post(client, {"type": "customer.subscription.updated", "data": {"object": remote}})

        subscription = billing.get_subscription(owner.id)
        assert subscription.stripe_subscription_id == "sub_1"
        assert subscription.cancel_at_period_end is True
        assert subscription.next_billing_date == datetime(2026, 1, 1)

    def test_subscription_deleted(self, client, owner, plans, subscribe, stripe_configured):
        owner.stripe_customer_id = "cus_1"
        subscribe(owner, plans["Basic"], stripe_subscription_id="sub_1")

        self._post(client, {"type": "customer.subscription.deleted",
                            "data": {"object": {"id": "sub_1", "customer": "cus_1", "status": "canceled"}}})

        subscription = billing.get_subscription(owner.id)
        assert subscription.is_active is False
        assert subscription.stripe_subscription_id is None

    def test_unhandled_event(self, client, stripe_configured):
        resp = self._post(client, {"type": "invoice.created", "data": {"object": {}}})
        assert resp.get_json() == {"received": True, "handled": False}
