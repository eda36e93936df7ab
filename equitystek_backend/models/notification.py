from datetime import datetime

from . import db

NOTIFICATION_TYPES = (
    "maintenance_due",
    "maintenance_completed",
    "subscription_renewal",
    "property_update",
    "valuation_update",
    "system_notice",
)


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(30), nullable=False)
    is_read = db.Column(db.Boolean, nullable=False, default=False, index=True)
    related_entity_id = db.Column(db.Integer, nullable=True)
    related_entity_type = db.Column(db.String(30), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Notification {self.id}: {self.type} user={self.user_id}>"

    def serialize(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "is_read": self.is_read,
            "related_entity_id": self.related_entity_id,
            "related_entity_type": self.related_entity_type,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
