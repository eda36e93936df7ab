import secrets

import stripe
from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func

from ..extensions import db
from ..models import (
    MAINTENANCE_CATEGORIES, MAINTENANCE_PRIORITIES, MAINTENANCE_STATUSES,
    PROPERTY_TYPES, USER_ROLES, MaintenanceRecord, Property, Receipt,
    Subscription, SubscriptionPlan, User,
)
from ..security import admin_required
from ..services import billing, notification_service, receipts as receipt_service
from ..utils.email import send_email
from ..utils.validation import parse_datetime, to_float, to_int

bp = Blueprint("admin", __name__)

USER_ADMIN_FIELDS = (
    "email", "username", "full_name", "phone", "role", "is_active", "specialty_type",
    "license_number", "experience_years", "rating", "verified", "email_notifications",
)
SUBSCRIPTION_ADMIN_FIELDS = ("is_active", "current_price", "property_count", "plan_id", "next_billing_date")


def _not_found(entity):
    return jsonify({"error": "not_found", "message": f"{entity} not found"}), 404


# ============= USERS =============

@bp.get("/admin/users")
@admin_required
def list_users():
    users = User.query.order_by(User.id).all()
    return jsonify([u.serialize(include_sensitive=True) for u in users]), 200


@bp.get("/admin/users/<int:user_id>")
@admin_required
def get_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        return _not_found("User")
    return jsonify(user.serialize(include_sensitive=True)), 200


@bp.patch("/admin/users/<int:user_id>")
@admin_required
def update_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        return _not_found("User")

    data = request.get_json(silent=True) or {}
    if "role" in data and data["role"] not in USER_ROLES:
        return jsonify({"error": "validation_error", "message": f"Invalid role: {data['role']}"}), 400

    try:
        for field in USER_ADMIN_FIELDS:
            if field in data:
                setattr(user, field, data[field])
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "update_failed", "message": str(e)}), 500

    return jsonify(user.serialize(include_sensitive=True)), 200


@bp.post("/admin/users/<int:user_id>/reset-password")
@admin_required
def reset_password(user_id):
    """Replace the user's password with a random temporary one and email it"""
    user = db.session.get(User, user_id)
    if user is None:
        return _not_found("User")

    temporary_password = secrets.token_hex(8)
    user.set_password(temporary_password)
    db.session.commit()

    emailed = send_email(
        user.email,
        "Your Equitystek password has been reset",
        f"Hello {user.display_name},\n\nAn administrator reset your password.\n"
        f"Temporary password: {temporary_password}\n\nPlease change it after signing in.",
    )
    current_app.logger.info("Admin reset password for user %s", user.id)
    return jsonify({"success": True, "temporary_password": temporary_password, "emailed": emailed}), 200


# ============= SUBSCRIPTIONS =============

@bp.get("/admin/subscriptions")
@admin_required
def list_subscriptions():
    subscriptions = Subscription.query.order_by(Subscription.id).all()
    return jsonify([s.serialize(include_plan=True) for s in subscriptions]), 200


@bp.get("/admin/subscriptions/<int:subscription_id>")
@admin_required
def get_subscription(subscription_id):
    subscription = db.session.get(Subscription, subscription_id)
    if subscription is None:
        return _not_found("Subscription")
    return jsonify(subscription.serialize(include_plan=True)), 200


@bp.patch("/admin/subscriptions/<int:subscription_id>")
@admin_required
def update_subscription(subscription_id):
    subscription = db.session.get(Subscription, subscription_id)
    if subscription is None:
        return _not_found("Subscription")

    data = request.get_json(silent=True) or {}
    try:
        if "current_price" in data:
            data["current_price"] = to_float(data["current_price"], "current_price")
        if "property_count" in data:
            data["property_count"] = to_int(data["property_count"], "property_count")
        if "plan_id" in data:
            data["plan_id"] = to_int(data["plan_id"], "plan_id")
            if db.session.get(SubscriptionPlan, data["plan_id"]) is None:
                return _not_found("Subscription plan")
        if "next_billing_date" in data:
            data["next_billing_date"] = parse_datetime(data["next_billing_date"])
    except ValueError as e:
        return jsonify({"error": "validation_error", "message": str(e)}), 400

    was_active = subscription.is_active
    for field in SUBSCRIPTION_ADMIN_FIELDS:
        if field in data and data[field] is not None:
            setattr(subscription, field, data[field])

    # Mirror activation changes onto the linked Stripe subscription
    if subscription.stripe_subscription_id and subscription.is_active != was_active and billing.init_stripe():
        try:
            stripe.Subscription.modify(
                subscription.stripe_subscription_id,
                cancel_at_period_end=not subscription.is_active,
            )
            subscription.cancel_at_period_end = not subscription.is_active
        except stripe.StripeError as e:
            current_app.logger.error("Error updating Stripe subscription %s: %s",
                                     subscription.stripe_subscription_id, e)

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "update_failed", "message": str(e)}), 500

    return jsonify(subscription.serialize(include_plan=True)), 200


# ============= PROPERTIES & MAINTENANCE =============

@bp.get("/admin/properties")
@admin_required
def list_properties():
    properties = Property.query.order_by(Property.id).all()
    return jsonify([p.serialize() for p in properties]), 200


@bp.get("/admin/properties/<int:property_id>")
@admin_required
def get_property(property_id):
    prop = db.session.get(Property, property_id)
    if prop is None:
        return _not_found("Property")
    return jsonify(prop.serialize()), 200


@bp.patch("/admin/properties/<int:property_id>")
@admin_required
def update_property(property_id):
    prop = db.session.get(Property, property_id)
    if prop is None:
        return _not_found("Property")

    data = request.get_json(silent=True) or {}
    if "property_type" in data and data["property_type"] not in PROPERTY_TYPES:
        return jsonify({"error": "validation_error", "message": "Invalid property_type"}), 400

    try:
        for field in Property.UPDATABLE_FIELDS:
            if field in data:
                setattr(prop, field, data[field])
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "update_failed", "message": str(e)}), 500

    return jsonify(prop.serialize()), 200


@bp.get("/admin/maintenance")
@admin_required
def list_maintenance():
    records = MaintenanceRecord.query.order_by(MaintenanceRecord.id).all()
    return jsonify([r.serialize() for r in records]), 200


@bp.get("/admin/maintenance/<int:record_id>")
@admin_required
def get_maintenance(record_id):
    record = db.session.get(MaintenanceRecord, record_id)
    if record is None:
        return _not_found("Maintenance record")
    return jsonify(record.serialize()), 200


@bp.patch("/admin/maintenance/<int:record_id>")
@admin_required
def update_maintenance(record_id):
    record = db.session.get(MaintenanceRecord, record_id)
    if record is None:
        return _not_found("Maintenance record")

    data = request.get_json(silent=True) or {}
    for field, allowed in (("category", MAINTENANCE_CATEGORIES), ("status", MAINTENANCE_STATUSES),
                           ("priority", MAINTENANCE_PRIORITIES)):
        if field in data and data[field] not in allowed:
            return jsonify({"error": "validation_error", "message": f"Invalid {field}"}), 400

    try:
        if "completed_date" in data:
            data["completed_date"] = parse_datetime(data["completed_date"])
        for field in MaintenanceRecord.UPDATABLE_FIELDS:
            if field in data:
                setattr(record, field, data[field])
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": "validation_error", "message": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "update_failed", "message": str(e)}), 500

    return jsonify(record.serialize()), 200


# ============= RECEIPTS =============

@bp.get("/admin/receipts")
@admin_required
def list_receipts():
    receipts = Receipt.query.order_by(Receipt.created_at.desc(), Receipt.id.desc()).all()
    return jsonify([r.serialize() for r in receipts]), 200


@bp.get("/admin/receipts/<int:receipt_id>")
@admin_required
def get_receipt(receipt_id):
    receipt = db.session.get(Receipt, receipt_id)
    if receipt is None:
        return _not_found("Receipt")
    return jsonify(receipt.serialize()), 200


@bp.post("/admin/receipts/generate")
@admin_required
def generate_receipt():
    """Issue a manual receipt, e.g. for corrections"""
    data = request.get_json(silent=True) or {}

    for field in ("user_id", "amount", "description"):
        if data.get(field) in (None, ""):
            return jsonify({"error": "validation_error", "message": f"{field} is required"}), 400

    try:
        user_id = to_int(data["user_id"], "user_id")
        amount = to_float(data["amount"], "amount")
    except ValueError as e:
        return jsonify({"error": "validation_error", "message": str(e)}), 400

    if db.session.get(User, user_id) is None:
        return _not_found("User")

    receipt_type = data.get("type") or "one_time"
    try:
        receipt = receipt_service.create_receipt(
            user_id=user_id,
            amount=amount,
            currency="AUD",
            description=data["description"],
            receipt_type=receipt_type,
            payment_method="manual_admin",
            payment_status="paid",
            items={"items": [{"name": data["description"], "amount": amount}]},
        )
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "creation_failed", "message": str(e)}), 500

    return jsonify(receipt.serialize()), 201


# ============= NOTIFICATIONS & STATS =============

@bp.post("/admin/notifications/broadcast")
@admin_required
def broadcast():
    data = request.get_json(silent=True) or {}
    message = data.get("message") or ""
    message = message.strip() if isinstance(message, str) else ""
    if not message:
        return jsonify({"error": "validation_error", "message": "message is required"}), 400

    try:
        user_id = to_int(data.get("user_id"), "user_id")
    except ValueError as e:
        return jsonify({"error": "validation_error", "message": str(e)}), 400
    if user_id is not None and db.session.get(User, user_id) is None:
        return _not_found("User")

    result = notification_service.create_system_notice(
        message, title=data.get("title") or "System Notice", user_id=user_id
    )
    sent = len(result) if isinstance(result, list) else 1
    return jsonify({"message": "Notification sent", "recipients": sent}), 201


def _grouped_counts(column, id_column):
    rows = db.session.query(column, func.count(id_column)).group_by(column).all()
    return {key or "unknown": count for key, count in rows}


@bp.get("/admin/stats")
@admin_required
def stats():
    """Dashboard totals and distributions"""
    total_revenue = (
        db.session.query(func.sum(Receipt.amount)).filter(Receipt.payment_status == "paid").scalar() or 0
    )

    return jsonify({
        "total_users": User.query.count(),
        "total_properties": Property.query.count(),
        "active_subscriptions": Subscription.query.filter_by(is_active=True).count(),
        "total_subscriptions": Subscription.query.count(),
        "total_revenue": float(total_revenue),
        "properties_by_type": _grouped_counts(Property.property_type, Property.id),
        "maintenance_by_category": _grouped_counts(MaintenanceRecord.category, MaintenanceRecord.id),
        "maintenance_by_status": _grouped_counts(MaintenanceRecord.status, MaintenanceRecord.id),
        "receipt_count": Receipt.query.count(),
    }), 200
