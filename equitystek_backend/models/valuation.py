from datetime import datetime

from . import db


class Valuation(db.Model):
    __tablename__ = "valuations"

    id = db.Column(db.Integer, primary_key=True)
    property_id = db.Column(db.Integer, db.ForeignKey("properties.id"), nullable=False, index=True)

    comparable_sales_value = db.Column(db.Float, nullable=True)
    per_square_foot_value = db.Column(db.Float, nullable=True)
    automated_model_value = db.Column(db.Float, nullable=True)
    cost_approach_value = db.Column(db.Float, nullable=True)
    income_approach_value = db.Column(db.Float, nullable=True)
    maintenance_added_value = db.Column(db.Float, nullable=True)
    equitystek_value = db.Column(db.Float, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    METHOD_FIELDS = (
        "comparable_sales_value", "per_square_foot_value", "automated_model_value",
        "cost_approach_value", "income_approach_value", "maintenance_added_value",
    )

    def __repr__(self):
        return f"<Valuation {self.id}: property={self.property_id} value={self.equitystek_value}>"

    def serialize(self):
        data = {"id": self.id, "property_id": self.property_id}
        for field in self.METHOD_FIELDS:
            data[field] = getattr(self, field)
        data["equitystek_value"] = self.equitystek_value
        data["created_at"] = self.created_at.isoformat() if self.created_at else None
        return data
