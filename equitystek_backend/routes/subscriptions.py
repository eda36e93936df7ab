from decimal import Decimal

import stripe
from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from ..errors import PlanLimitExceeded, PlanNotFound, StripeNotConfigured, SubscriptionNotFound
from ..extensions import db
from ..models import SubscriptionPlan
from ..security import admin_required, current_user_id, get_current_user
from ..services import billing
from ..utils.validation import query_int

bp = Blueprint("subscriptions", __name__)


@bp.get("/subscription-plans")
def list_plans():
    plans = SubscriptionPlan.query.order_by(SubscriptionPlan.base_price).all()
    return jsonify([p.serialize() for p in plans]), 200


@bp.get("/subscription")
@jwt_required()
def get_subscription():
    subscription = billing.get_subscription(current_user_id())
    if subscription is None:
        return jsonify({"error": "not_found", "message": "No subscription found"}), 404
    return jsonify(subscription.serialize(include_plan=True)), 200


@bp.post("/subscription")
@jwt_required()
def choose_plan():
    """Subscribe to a plan, or switch plans, priced for the user's current properties"""
    user = get_current_user()
    data = request.get_json(silent=True) or {}

    plan_id = data.get("plan_id", data.get("planId"))
    if plan_id is None:
        return jsonify({"error": "validation_error", "message": "plan_id is required"}), 400

    try:
        plan = billing.get_plan(int(plan_id))
    except (TypeError, ValueError):
        return jsonify({"error": "validation_error", "message": "plan_id must be an integer"}), 400
    except PlanNotFound as e:
        return jsonify({"error": "not_found", "message": str(e)}), 404

    try:
        subscription, client_secret = billing.subscribe(user, plan)
    except PlanLimitExceeded as e:
        db.session.rollback()
        return jsonify({"error": "plan_limit_exceeded", "message": str(e), "max_properties": e.max_properties}), 409
    except stripe.StripeError as e:
        db.session.rollback()
        current_app.logger.error("Stripe error subscribing user %s: %s", user.id, e)
        return jsonify({"error": "payment_failed", "message": str(e)}), 502
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "subscription_failed", "message": str(e)}), 500

    response = subscription.serialize(include_plan=True)
    if client_secret:
        response["client_secret"] = client_secret
    return jsonify(response), 200


@bp.get("/subscription/price-estimate")
@jwt_required()
def price_estimate():
    """Price of the current plan for a hypothetical property count"""
    try:
        property_count = query_int(request.args, "propertyCount", "property_count") or 1
    except ValueError as e:
        return jsonify({"error": "validation_error", "message": str(e)}), 400

    subscription = billing.get_subscription(current_user_id())
    if subscription is None:
        return jsonify({"error": "not_found", "message": "No subscription found"}), 404

    try:
        estimated = billing.calculate_subscription_price(subscription.plan, property_count)
    except PlanLimitExceeded as e:
        return jsonify({"error": "plan_limit_exceeded", "message": str(e), "max_properties": e.max_properties}), 400
    except ValueError as e:
        return jsonify({"error": "validation_error", "message": str(e)}), 400

    current = Decimal(str(subscription.current_price))
    return jsonify({
        "property_count": property_count,
        "current_price": float(current),
        "estimated_price": float(estimated),
        "price_difference": float(estimated - current),
        "plan_id": subscription.plan_id,
    }), 200


@bp.get("/subscription/calculate-price")
def calculate_price():
    try:
        plan_id = query_int(request.args, "planId", "plan_id")
        property_count = query_int(request.args, "propertyCount", "property_count")
    except ValueError as e:
        return jsonify({"error": "validation_error", "message": str(e)}), 400

    if plan_id is None:
        return jsonify({"error": "validation_error", "message": "planId is required"}), 400
    if property_count is None:
        property_count = 1

    try:
        price = billing.price_for_plan(plan_id, property_count)
    except PlanNotFound as e:
        return jsonify({"error": "not_found", "message": str(e)}), 404
    except PlanLimitExceeded as e:
        return jsonify({"error": "plan_limit_exceeded", "message": str(e), "max_properties": e.max_properties}), 400
    except ValueError as e:
        return jsonify({"error": "validation_error", "message": str(e)}), 400

    return jsonify({"plan_id": plan_id, "property_count": property_count, "price": float(price)}), 200


@bp.post("/subscription/cancel")
@jwt_required()
def cancel():
    user = get_current_user()
    try:
        subscription = billing.cancel_subscription(user)
    except SubscriptionNotFound as e:
        return jsonify({"error": "not_found", "message": str(e)}), 404
    except stripe.StripeError as e:
        db.session.rollback()
        current_app.logger.error("Stripe error cancelling for user %s: %s", user.id, e)
        return jsonify({"error": "cancellation_failed", "message": str(e)}), 502

    return jsonify({
        "message": "Subscription will be cancelled at the end of the billing period",
        "subscription": subscription.serialize(),
    }), 200


@bp.post("/create-subscription")
@jwt_required()
def create_stripe_subscription():
    user = get_current_user()
    data = request.get_json(silent=True) or {}

    try:
        result = billing.create_stripe_subscription(user, price_id=data.get("priceId") or data.get("price_id"))
    except StripeNotConfigured as e:
        return jsonify({"error": "stripe_not_configured", "message": str(e)}), 503
    except ValueError as e:
        return jsonify({"error": "validation_error", "message": str(e)}), 400
    except stripe.StripeError as e:
        db.session.rollback()
        current_app.logger.error("Stripe subscription error for user %s: %s", user.id, e)
        return jsonify({"error": "subscription_failed", "message": str(e)}), 502

    return jsonify(result), 200


@bp.post("/initialize-subscription-plans")
@admin_required
def initialize_plans():
    plans, created = billing.initialize_subscription_plans()
    return jsonify([p.serialize() for p in plans]), 201 if created else 200


@bp.post("/subscription/webhook")
def stripe_webhook():
    """Handle Stripe webhook events"""
    endpoint_secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if not endpoint_secret:
        return jsonify({"error": "stripe_not_configured", "message": "Webhook secret not configured"}), 503

    payload = request.get_data()
    sig_header = request.headers.get("Stripe-Signature", "")

    try:
        event = stripe.Webhook.construct_event(payload, sig_header, endpoint_secret)
    except ValueError:
        return jsonify({"error": "invalid_payload"}), 400
    except stripe.SignatureVerificationError:
        return jsonify({"error": "invalid_signature"}), 400

    try:
        handled = billing.handle_stripe_event(event)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Webhook %s failed: %s", event["type"], e)
        return jsonify({"error": "webhook_failed", "message": str(e)}), 500

    return jsonify({"received": True, "handled": bool(handled)}), 200
