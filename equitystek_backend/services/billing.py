"""
Subscription pricing and Stripe synchronisation.

A plan charges ``base_price`` for the first property and ``property_price``
for every property after that, up to ``max_properties`` (None = unlimited).
The local ``Subscription`` row is the source of truth for price; Stripe only
receives the property count as the subscription item quantity.
"""
import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

import stripe
from dateutil.relativedelta import relativedelta
from flask import current_app

from ..errors import PlanLimitExceeded, PlanNotFound, StripeNotConfigured, SubscriptionNotFound
from ..extensions import db
from ..models import Property, Subscription, SubscriptionPlan, User
from . import receipts

log = logging.getLogger(__name__)

CENT = Decimal("0.01")

DEFAULT_PLANS = [
    {
        "name": "Basic",
        "description": "Perfect for individual property owners",
        "base_price": Decimal("9.99"),
        "property_price": Decimal("4.99"),
        "max_properties": 3,
        "features": {"featureList": ["Property management", "Basic maintenance tracking", "Simple valuation"]},
        "billing_cycle": "monthly",
    },
    {
        "name": "Professional",
        "description": "For property managers and small portfolios",
        "base_price": Decimal("19.99"),
        "property_price": Decimal("3.99"),
        "max_properties": 10,
        "features": {"featureList": ["All Basic features", "Advanced valuation tools", "Document storage",
                                      "Maintenance scheduling"]},
        "billing_cycle": "monthly",
    },
    {
        "name": "Enterprise",
        "description": "For large property portfolios and teams",
        "base_price": Decimal("49.99"),
        "property_price": Decimal("2.99"),
        "max_properties": None,
        "features": {"featureList": ["All Professional features", "Team access", "API integration",
                                      "Custom reporting", "Priority support"]},
        "billing_cycle": "monthly",
    },
]


def init_stripe():
    """Set the API key from config; False when Stripe is not configured."""
    stripe_key = current_app.config.get("STRIPE_SECRET_KEY")
    if stripe_key:
        stripe.api_key = stripe_key
        return True
    return False


def stripe_mode():
    key = current_app.config.get("STRIPE_SECRET_KEY") or ""
    return "live" if key.startswith("sk_live_") else "test"


def _to_cents(amount):
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ============= PRICING =============

def calculate_subscription_price(plan: SubscriptionPlan, property_count: int) -> Decimal:
    if property_count < 0:
        raise ValueError("property_count cannot be negative")

    if plan.max_properties is not None and property_count > plan.max_properties:
        raise PlanLimitExceeded(plan.max_properties, property_count)

    # The first property is included in the base price
    additional = max(0, property_count - 1)
    price = Decimal(str(plan.base_price)) + Decimal(str(plan.property_price)) * additional
    return price.quantize(CENT, rounding=ROUND_HALF_UP)


def get_plan(plan_id) -> SubscriptionPlan:
    plan = db.session.get(SubscriptionPlan, plan_id)
    if plan is None:
        raise PlanNotFound(f"Subscription plan {plan_id} not found")
    return plan


def price_for_plan(plan_id, property_count) -> Decimal:
    return calculate_subscription_price(get_plan(plan_id), property_count)


def next_billing_date(start=None, billing_cycle="monthly"):
    start = start or datetime.utcnow()
    if billing_cycle in ("yearly", "annual"):
        return start + relativedelta(years=1)
    return start + relativedelta(months=1)


def get_subscription(user_id):
    return Subscription.query.filter_by(user_id=user_id).first()


def count_properties(user_id) -> int:
    return Property.query.filter_by(user_id=user_id).count()


def ensure_within_plan_limit(user_id, property_count):
    """Raise PlanLimitExceeded if an active subscription cannot cover the count."""
    subscription = get_subscription(user_id)
    if subscription is None or not subscription.is_active:
        return
    calculate_subscription_price(subscription.plan, property_count)


def update_subscription_property_count(user_id, property_count, commit=True) -> Subscription:
    subscription = get_subscription(user_id)
    if subscription is None:
        raise SubscriptionNotFound("No subscription found for this user")

    subscription.current_price = calculate_subscription_price(subscription.plan, property_count)
    subscription.property_count = property_count
    subscription.updated_at = datetime.utcnow()

    if commit:
        db.session.commit()
    return subscription


# ============= STRIPE SYNC =============

def _resolve_subscription_item(subscription, stripe_id):
    if subscription.stripe_subscription_item_id:
        return subscription.stripe_subscription_item_id

    remote = stripe.Subscription.retrieve(stripe_id)
    items = remote["items"]["data"]
    if not items:
        return None
    subscription.stripe_subscription_item_id = items[0]["id"]
    return subscription.stripe_subscription_item_id


def sync_stripe_quantity(subscription, property_count) -> bool:
    """Push the property count to the Stripe subscription item; True if sent."""
    user = subscription.user
    stripe_id = subscription.stripe_subscription_id or (user.stripe_subscription_id if user else None)
    if not stripe_id or not subscription.is_active:
        return False
    if not init_stripe():
        return False

    # Subscriptions started through /create-subscription only stamp the user
    subscription.stripe_subscription_id = stripe_id
    item_id = _resolve_subscription_item(subscription, stripe_id)
    if not item_id:
        log.warning("Stripe subscription %s has no items", stripe_id)
        return False

    stripe.Subscription.modify(
        stripe_id,
        proration_behavior="create_prorations",
        items=[{"id": item_id, "quantity": property_count}],
    )
    log.info("Stripe subscription %s quantity -> %s", stripe_id, property_count)
    return True


def resync_after_property_change(user_id):
    """
    Recount the user's properties and reprice their subscription.

    Returns the summary attached to property responses, or None when the user
    has no subscription. Billing failures are logged, never raised: the
    property change itself has already been committed.
    """
    property_count = count_properties(user_id)
    try:
        subscription = update_subscription_property_count(user_id, property_count)
    except SubscriptionNotFound:
        log.info("User %s has no subscription; skipping reprice", user_id)
        return None
    except PlanLimitExceeded as e:
        log.warning("User %s exceeds plan limit after property change: %s", user_id, e)
        return None

    try:
        if sync_stripe_quantity(subscription, property_count):
            db.session.commit()
    except stripe.StripeError as e:
        db.session.rollback()
        log.error("Failed to update Stripe quantity for user %s: %s", user_id, e)

    return {
        "property_count": subscription.property_count,
        "current_price": float(subscription.current_price),
        "next_billing_date": subscription.next_billing_date.isoformat(),
    }


# ============= PLANS =============

def initialize_subscription_plans():
    """Create the default plans once; returns (plans, created)."""
    existing = SubscriptionPlan.query.order_by(SubscriptionPlan.id).all()
    if existing:
        log.info("Subscription plans already exist, skipping initialization")
        return existing, False

    plans = [SubscriptionPlan(**values) for values in DEFAULT_PLANS]
    db.session.add_all(plans)
    db.session.commit()
    log.info("Initialized %d subscription plans", len(plans))
    return plans, True


# ============= SUBSCRIBE / CANCEL =============

def subscribe(user: User, plan: SubscriptionPlan):
    """
    Create or switch the user's local subscription to ``plan``.

    The price is derived from the properties the user already has (minimum of
    one). A receipt is written for new subscriptions; when Stripe is configured
    a PaymentIntent backs it and the receipt stays pending until the webhook
    confirms payment. Returns (subscription, client_secret).
    """
    property_count = max(1, count_properties(user.id))
    price = calculate_subscription_price(plan, property_count)
    now = datetime.utcnow()

    subscription = get_subscription(user.id)
    is_new = subscription is None
    if is_new:
        subscription = Subscription(user_id=user.id, created_at=now,
                                    stripe_subscription_id=user.stripe_subscription_id)
        db.session.add(subscription)

    subscription.plan_id = plan.id
    subscription.plan = plan
    subscription.property_count = property_count
    subscription.current_price = price
    subscription.billing_cycle = plan.billing_cycle
    subscription.is_active = True
    subscription.cancel_at_period_end = False
    if is_new or subscription.next_billing_date is None:
        subscription.next_billing_date = next_billing_date(now, plan.billing_cycle)
    subscription.updated_at = now

    client_secret = None
    if is_new:
        intent_id = None
        if init_stripe():
            customer_id = ensure_stripe_customer(user)
            intent = stripe.PaymentIntent.create(
                amount=_to_cents(price),
                currency=current_app.config.get("STRIPE_CURRENCY", "usd"),
                customer=customer_id,
                setup_future_usage="off_session",
                description=f"Equitystek {plan.name} subscription - initial payment",
                metadata={"user_id": str(user.id), "plan_id": str(plan.id)},
            )
            intent_id = intent["id"]
            client_secret = intent["client_secret"]

        receipts.create_receipt(
            user_id=user.id,
            amount=price,
            description=f"{plan.name} Subscription - Initial payment",
            receipt_type="subscription",
            payment_method="card" if intent_id else None,
            payment_status="pending" if intent_id else "paid",
            stripe_payment_intent_id=intent_id,
            items={"items": [{"name": f"Equitystek {plan.name} ({property_count} properties)",
                              "amount": float(price)}]},
            commit=False,
        )
    elif subscription.stripe_subscription_id:
        try:
            sync_stripe_quantity(subscription, property_count)
        except stripe.StripeError as e:
            log.error("Failed to sync Stripe subscription for user %s: %s", user.id, e)

    db.session.commit()
    log.info("User %s subscribed to plan %s at %s", user.id, plan.name, price)
    return subscription, client_secret


def cancel_subscription(user: User) -> Subscription:
    subscription = get_subscription(user.id)
    if subscription is None or not subscription.is_active:
        raise SubscriptionNotFound("No active subscription found")

    stripe_id = subscription.stripe_subscription_id or user.stripe_subscription_id
    if stripe_id and init_stripe():
        stripe.Subscription.modify(stripe_id, cancel_at_period_end=True)

    # Access continues until the paid period ends
    subscription.cancel_at_period_end = True
    subscription.updated_at = datetime.utcnow()
    db.session.commit()
    return subscription


def ensure_stripe_customer(user: User) -> str:
    if user.stripe_customer_id:
        return user.stripe_customer_id
    customer = stripe.Customer.create(
        email=user.email,
        name=user.display_name,
        metadata={"user_id": str(user.id)},
    )
    user.stripe_customer_id = customer["id"]
    return user.stripe_customer_id


def create_stripe_subscription(user: User, price_id=None):
    """
    Start (or resume) the Stripe-side subscription for ``user``.

    Collection is by invoice (30 days) with a separate PaymentIntent for the
    first charge so the client can confirm the card immediately.
    """
    if not init_stripe():
        raise StripeNotConfigured("Stripe not configured")

    if user.stripe_subscription_id:
        remote = stripe.Subscription.retrieve(user.stripe_subscription_id, expand=["latest_invoice.payment_intent"])
        client_secret = None
        invoice = remote.get("latest_invoice")
        if invoice and not isinstance(invoice, str) and invoice.get("payment_intent"):
            client_secret = invoice["payment_intent"].get("client_secret")
        return {"subscription_id": remote["id"], "client_secret": client_secret}

    price_id = current_app.config.get("STRIPE_PRICE_ID") or price_id
    if not price_id:
        raise ValueError("Price ID is required")

    customer_id = ensure_stripe_customer(user)
    price = stripe.Price.retrieve(price_id)
    amount = price.get("unit_amount") or 999

    intent = stripe.PaymentIntent.create(
        amount=amount,
        currency=price.get("currency") or current_app.config.get("STRIPE_CURRENCY", "usd"),
        customer=customer_id,
        setup_future_usage="off_session",
        description="Equitystek Subscription - Initial payment",
        metadata={"price_id": price_id, "user_id": str(user.id)},
    )

    local = get_subscription(user.id)
    quantity = local.property_count if local else max(1, count_properties(user.id))
    remote = stripe.Subscription.create(
        customer=customer_id,
        items=[{"price": price_id, "quantity": quantity}],
        collection_method="send_invoice",
        days_until_due=30,
        metadata={"payment_intent_id": intent["id"], "user_id": str(user.id)},
    )

    user.stripe_subscription_id = remote["id"]
    if local is not None:
        local.stripe_subscription_id = remote["id"]
        items = remote["items"]["data"]
        if items:
            local.stripe_subscription_item_id = items[0]["id"]
    db.session.commit()

    return {"subscription_id": remote["id"], "client_secret": intent["client_secret"]}


# ============= WEBHOOKS =============

def handle_stripe_event(event):
    """Apply a verified Stripe event to local state. Returns the handler name or None."""
    event_type = event["type"]
    data = event["data"]["object"]

    if event_type == "payment_intent.succeeded":
        _payment_succeeded(data)
    elif event_type == "payment_intent.payment_failed":
        _payment_failed(data)
    elif event_type in ("customer.subscription.created", "customer.subscription.updated",
                        "customer.subscription.deleted"):
        _subscription_changed(data, deleted=event_type.endswith("deleted"))
    else:
        log.info("Unhandled Stripe event type %s", event_type)
        return None

    db.session.commit()
    return event_type


def _payment_succeeded(intent):
    receipt = receipts.find_by_payment_intent(intent["id"])
    if receipt is None:
        return
    receipt.payment_status = "paid"
    subscription = get_subscription(receipt.user_id)
    if subscription is not None and not subscription.is_active:
        subscription.is_active = True


def _payment_failed(intent):
    receipt = receipts.find_by_payment_intent(intent["id"])
    if receipt is None:
        return
    receipt.payment_status = "failed"
    subscription = get_subscription(receipt.user_id)
    if subscription is not None and receipt.type == "subscription":
        subscription.is_active = False


def _subscription_changed(remote, deleted=False):
    user = User.query.filter_by(stripe_customer_id=remote.get("customer")).first()
    if user is None:
        return

    user.stripe_subscription_id = None if deleted else remote["id"]
    subscription = get_subscription(user.id)
    if subscription is None:
        return

    subscription.stripe_subscription_id = None if deleted else remote["id"]
    subscription.is_active = not deleted and remote.get("status") in ("active", "trialing")
    subscription.cancel_at_period_end = bool(remote.get("cancel_at_period_end"))
    period_end = remote.get("current_period_end")
    if period_end:
        subscription.next_billing_date = datetime.utcfromtimestamp(period_end)
    subscription.updated_at = datetime.utcnow()
