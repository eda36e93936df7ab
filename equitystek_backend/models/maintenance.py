from datetime import datetime

from . import db

MAINTENANCE_CATEGORIES = (
    "roof", "plumbing", "electrical", "hvac", "appliances", "flooring",
    "kitchen", "bathroom", "exterior", "landscaping", "other",
)
MAINTENANCE_STATUSES = ("pending", "scheduled", "in_progress", "completed", "cancelled")
MAINTENANCE_PRIORITIES = ("low", "medium", "high", "emergency")


class MaintenanceRecord(db.Model):
    __tablename__ = "maintenance_records"

    id = db.Column(db.Integer, primary_key=True)
    property_id = db.Column(db.Integer, db.ForeignKey("properties.id"), nullable=False, index=True)

    # Work Information
    title = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(30), nullable=False)
    description = db.Column(db.Text, nullable=True)
    cost = db.Column(db.Float, nullable=False)
    contractor = db.Column(db.String(200), nullable=True)
    completed_date = db.Column(db.DateTime, nullable=False)
    estimated_value_added = db.Column(db.Float, nullable=True)

    # Attachments
    documents_urls = db.Column(db.JSON, nullable=True)
    image_urls = db.Column(db.JSON, nullable=True)

    # Submitted by a tradesperson
    trade_person_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    status = db.Column(db.String(20), default="completed")
    priority = db.Column(db.String(20), default="medium")

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    trade_person = db.relationship("User", foreign_keys=[trade_person_id])

    UPDATABLE_FIELDS = (
        "title", "category", "description", "cost", "contractor", "completed_date",
        "estimated_value_added", "documents_urls", "image_urls", "status", "priority",
    )

    def __repr__(self):
        return f"<MaintenanceRecord {self.id}: {self.title} - {self.status}>"

    def serialize(self):
        return {
            "id": self.id,
            "property_id": self.property_id,
            "title": self.title,
            "category": self.category,
            "description": self.description,
            "cost": self.cost,
            "contractor": self.contractor,
            "completed_date": self.completed_date.isoformat() if self.completed_date else None,
            "estimated_value_added": self.estimated_value_added,
            "documents_urls": self.documents_urls or [],
            "image_urls": self.image_urls or [],
            "trade_person_id": self.trade_person_id,
            "status": self.status,
            "priority": self.priority,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def serialize_work_record(self):
        """Shape returned to the tradesperson who submitted the work."""
        return {
            "id": self.id,
            "property_id": self.property_id,
            "property_name": self.property.display_name if self.property else "Unknown Property",
            "work_type": self.category,
            "work_description": self.description,
            "completion_date": self.completed_date.isoformat() if self.completed_date else None,
            "cost": self.cost,
            "images": self.image_urls or [],
        }
