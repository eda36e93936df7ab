from ..extensions import db
from ..models import Valuation

PER_SQUARE_FOOT = 200
PER_SQUARE_FOOT_METHOD = 195
PER_BEDROOM = 15000
PER_BATHROOM = 10000

# Offsets applied to the structural base value by each method
METHOD_ADJUSTMENTS = {
    "comparable_sales_value": -15000,
    "automated_model_value": -20000,
    "cost_approach_value": 10000,
    "income_approach_value": 5000,
}


def estimate_valuation(prop):
    """Estimate a property's value by each method from its attributes and maintenance history."""
    square_feet = prop.square_feet or 0
    base = square_feet * PER_SQUARE_FOOT + (prop.bedrooms or 0) * PER_BEDROOM + (prop.bathrooms or 0) * PER_BATHROOM

    maintenance_value = sum(r.estimated_value_added or 0 for r in prop.maintenance_records)

    estimate = {name: float(base + offset) for name, offset in METHOD_ADJUSTMENTS.items()}
    estimate["per_square_foot_value"] = float(square_feet * PER_SQUARE_FOOT_METHOD)
    estimate["maintenance_added_value"] = float(maintenance_value)
    estimate["equitystek_value"] = float(base + maintenance_value)
    return estimate


def save_valuation(property_id, values, commit=True):
    valuation = Valuation(property_id=property_id, equitystek_value=float(values["equitystek_value"]))
    for field in Valuation.METHOD_FIELDS:
        if values.get(field) is not None:
            setattr(valuation, field, float(values[field]))
    db.session.add(valuation)
    if commit:
        db.session.commit()
    return valuation


def latest_valuation(property_id):
    return (
        Valuation.query.filter_by(property_id=property_id)
        .order_by(Valuation.created_at.desc(), Valuation.id.desc())
        .first()
    )
