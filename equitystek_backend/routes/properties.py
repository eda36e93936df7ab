from datetime import datetime

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from ..errors import PlanLimitExceeded, UploadError
from ..extensions import db
from ..models import PROPERTY_TYPES, Property
from ..security import current_user_id
from ..services import billing, notification_service, uploads
from ..utils.validation import first_missing, to_float, to_int
from .common import load_owned_property

bp = Blueprint("properties", __name__)

REQUIRED_FIELDS = ("address", "city", "state", "zip_code", "property_type")
INT_FIELDS = ("bedrooms", "square_feet", "year_built")
FLOAT_FIELDS = ("bathrooms", "lot_size")


def _apply_fields(prop, data):
    """Copy whitelisted fields onto the property, coercing numeric ones."""
    if "property_type" in data and data["property_type"] not in PROPERTY_TYPES:
        raise ValueError(f"property_type must be one of: {', '.join(PROPERTY_TYPES)}")

    for field in Property.UPDATABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field in INT_FIELDS:
            value = to_int(value, field)
        elif field in FLOAT_FIELDS:
            value = to_float(value, field)
        setattr(prop, field, value)


@bp.get("/properties")
@jwt_required()
def list_properties():
    properties = (
        Property.query.filter_by(user_id=current_user_id())
        .order_by(Property.created_at.desc(), Property.id.desc())
        .all()
    )
    return jsonify([p.serialize() for p in properties]), 200


@bp.get("/properties/<int:property_id>")
@jwt_required()
def get_property(property_id):
    prop, error = load_owned_property(property_id, current_user_id())
    if error:
        return error
    return jsonify(prop.serialize()), 200


@bp.post("/properties")
@jwt_required()
def create_property():
    """Create a property and reprice the owner's subscription for the new count"""
    user_id = current_user_id()
    data = request.get_json(silent=True) or {}

    missing = first_missing(data, REQUIRED_FIELDS)
    if missing:
        return jsonify({"error": "validation_error", "message": f"{missing} is required"}), 400

    try:
        billing.ensure_within_plan_limit(user_id, billing.count_properties(user_id) + 1)
    except PlanLimitExceeded as e:
        return jsonify({
            "error": "plan_limit_exceeded",
            "message": str(e),
            "max_properties": e.max_properties,
        }), 409

    try:
        prop = Property(user_id=user_id)
        _apply_fields(prop, data)
        db.session.add(prop)
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": "validation_error", "message": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "creation_failed", "message": str(e)}), 500

    response = prop.serialize()
    subscription_info = billing.resync_after_property_change(user_id)
    if subscription_info:
        response["subscription_info"] = subscription_info

    current_app.logger.info("User %s created property %s", user_id, prop.id)
    return jsonify(response), 201


@bp.put("/properties/<int:property_id>")
@jwt_required()
def update_property(property_id):
    user_id = current_user_id()
    prop, error = load_owned_property(property_id, user_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    try:
        _apply_fields(prop, data)
        prop.updated_at = datetime.utcnow()
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": "validation_error", "message": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "update_failed", "message": str(e)}), 500

    notification_service.create_property_update(user_id, prop.id, "details updated")
    return jsonify(prop.serialize()), 200


@bp.delete("/properties/<int:property_id>")
@jwt_required()
def delete_property(property_id):
    """Delete a property with its maintenance history and valuations"""
    user_id = current_user_id()
    prop, error = load_owned_property(property_id, user_id)
    if error:
        return error

    try:
        db.session.delete(prop)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "deletion_failed", "message": str(e)}), 500

    billing.resync_after_property_change(user_id)
    return "", 204


@bp.post("/properties/upload-image")
@jwt_required()
def upload_property_image():
    try:
        image_url = uploads.save_property_image(request.files.get("propertyImage"))
    except UploadError as e:
        return jsonify({"error": "upload_failed", "message": str(e)}), 400

    return jsonify({"image_url": image_url, "message": "Image uploaded successfully"}), 201
