from datetime import datetime

from . import db


class SubscriptionPlan(db.Model):
    __tablename__ = "subscription_plans"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=False)

    # Pricing
    base_price = db.Column(db.Numeric(10, 2), nullable=False)       # covers the first property
    property_price = db.Column(db.Numeric(10, 2), nullable=False)   # each additional property
    max_properties = db.Column(db.Integer, nullable=True)           # None = unlimited

    features = db.Column(db.JSON, nullable=True)
    billing_cycle = db.Column(db.String(20), nullable=False, default="monthly")
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    subscriptions = db.relationship("Subscription", backref="plan", lazy=True)

    def __repr__(self):
        return f"<SubscriptionPlan {self.id}: {self.name}>"

    def serialize(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "base_price": float(self.base_price),
            "property_price": float(self.property_price),
            "max_properties": self.max_properties,
            "features": self.features or {},
            "billing_cycle": self.billing_cycle,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Subscription(db.Model):
    __tablename__ = "subscriptions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True)
    plan_id = db.Column(db.Integer, db.ForeignKey("subscription_plans.id"), nullable=False)

    property_count = db.Column(db.Integer, nullable=False, default=1)
    current_price = db.Column(db.Numeric(10, 2), nullable=False)
    billing_cycle = db.Column(db.String(20), nullable=False, default="monthly")
    next_billing_date = db.Column(db.DateTime, nullable=False)

    # Status tracking
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    cancel_at_period_end = db.Column(db.Boolean, nullable=False, default=False)

    # External payment processor data
    stripe_subscription_id = db.Column(db.String(80), nullable=True, index=True)
    stripe_subscription_item_id = db.Column(db.String(80), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = db.relationship("User", backref=db.backref("subscription", uselist=False))

    def __repr__(self):
        return f"<Subscription {self.id}: user={self.user_id} ${self.current_price}>"

    def serialize(self, include_plan=False):
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "plan_id": self.plan_id,
            "property_count": self.property_count,
            "current_price": float(self.current_price),
            "billing_cycle": self.billing_cycle,
            "next_billing_date": self.next_billing_date.isoformat() if self.next_billing_date else None,
            "is_active": self.is_active,
            "cancel_at_period_end": self.cancel_at_period_end,
            "stripe_subscription_id": self.stripe_subscription_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_plan and self.plan:
            data["plan"] = self.plan.serialize()
        return data
