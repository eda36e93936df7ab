from datetime import datetime

from . import db

PROPERTY_TYPES = ("single_family", "condominium", "townhouse", "multi_family", "commercial")


class Property(db.Model):
    __tablename__ = "properties"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Location
    address = db.Column(db.String(512), nullable=False)
    city = db.Column(db.String(100), nullable=False)
    state = db.Column(db.String(50), nullable=False)
    zip_code = db.Column(db.String(20), nullable=False)
    property_type = db.Column(db.String(30), nullable=False)

    # Property details
    bedrooms = db.Column(db.Integer, nullable=True)
    bathrooms = db.Column(db.Float, nullable=True)
    square_feet = db.Column(db.Integer, nullable=True)
    year_built = db.Column(db.Integer, nullable=True)
    lot_size = db.Column(db.Float, nullable=True)
    image_url = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    maintenance_records = db.relationship(
        "MaintenanceRecord", backref="property", lazy=True, cascade="all, delete-orphan"
    )
    valuations = db.relationship("Valuation", backref="property", lazy=True, cascade="all, delete-orphan")

    UPDATABLE_FIELDS = (
        "address", "city", "state", "zip_code", "property_type", "bedrooms",
        "bathrooms", "square_feet", "year_built", "lot_size", "image_url",
    )

    def __repr__(self):
        return f"<Property {self.id}: {self.address}>"

    @property
    def display_name(self):
        return f"{self.address}, {self.city}"

    def serialize(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "property_type": self.property_type,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "square_feet": self.square_feet,
            "year_built": self.year_built,
            "lot_size": self.lot_size,
            "image_url": self.image_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
