from flask import jsonify

from ..extensions import db
from ..models import Property


def load_owned_property(property_id, user_id):
    """Return (property, None) or (None, error response) for 404/403."""
    prop = db.session.get(Property, property_id)
    if prop is None:
        return None, (jsonify({"error": "not_found", "message": "Property not found"}), 404)
    if prop.user_id != user_id:
        return None, (jsonify({"error": "forbidden", "message": "You don't have access to this property"}), 403)
    return prop, None
