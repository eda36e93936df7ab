from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from ..extensions import db
from ..models import (
    MAINTENANCE_CATEGORIES, MAINTENANCE_PRIORITIES, MAINTENANCE_STATUSES,
    MaintenanceRecord, Property,
)
from ..security import current_user_id
from ..services import notification_service
from ..utils.validation import first_missing, parse_datetime, query_int, to_float
from .common import load_owned_property

bp = Blueprint("maintenance", __name__)

REQUIRED_FIELDS = ("property_id", "title", "category", "cost", "completed_date")


def _apply_fields(record, data):
    if "category" in data and data["category"] not in MAINTENANCE_CATEGORIES:
        raise ValueError(f"category must be one of: {', '.join(MAINTENANCE_CATEGORIES)}")
    if "status" in data and data["status"] not in MAINTENANCE_STATUSES:
        raise ValueError(f"status must be one of: {', '.join(MAINTENANCE_STATUSES)}")
    if "priority" in data and data["priority"] not in MAINTENANCE_PRIORITIES:
        raise ValueError(f"priority must be one of: {', '.join(MAINTENANCE_PRIORITIES)}")

    for field in MaintenanceRecord.UPDATABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field in ("cost", "estimated_value_added"):
            value = to_float(value, field)
        elif field == "completed_date":
            value = parse_datetime(value)
        setattr(record, field, value)


def _load_owned_record(record_id, user_id):
    record = db.session.get(MaintenanceRecord, record_id)
    if record is None:
        return None, (jsonify({"error": "not_found", "message": "Maintenance record not found"}), 404)
    if record.property.user_id != user_id:
        return None, (jsonify({"error": "forbidden", "message": "You don't have access to this record"}), 403)
    return record, None


@bp.get("/maintenance")
@jwt_required()
def list_maintenance():
    """Maintenance history for one property (propertyId) or every property the user owns"""
    user_id = current_user_id()
    try:
        property_id = query_int(request.args, "propertyId", "property_id")
    except ValueError as e:
        return jsonify({"error": "validation_error", "message": str(e)}), 400

    query = MaintenanceRecord.query
    if property_id is not None:
        _, error = load_owned_property(property_id, user_id)
        if error:
            return error
        query = query.filter(MaintenanceRecord.property_id == property_id)
    else:
        query = query.join(Property).filter(Property.user_id == user_id)

    records = query.order_by(MaintenanceRecord.completed_date.desc()).all()
    return jsonify([r.serialize() for r in records]), 200


@bp.post("/maintenance")
@jwt_required()
def create_maintenance():
    user_id = current_user_id()
    data = request.get_json(silent=True) or {}

    missing = first_missing(data, REQUIRED_FIELDS)
    if missing:
        return jsonify({"error": "validation_error", "message": f"{missing} is required"}), 400

    try:
        property_id = int(data["property_id"])
    except (TypeError, ValueError):
        return jsonify({"error": "validation_error", "message": "property_id must be an integer"}), 400

    _, error = load_owned_property(property_id, user_id)
    if error:
        return error

    try:
        record = MaintenanceRecord(property_id=property_id)
        _apply_fields(record, data)
        db.session.add(record)
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": "validation_error", "message": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "creation_failed", "message": str(e)}), 500

    return jsonify(record.serialize()), 201


@bp.get("/maintenance/<int:record_id>")
@jwt_required()
def get_maintenance(record_id):
    record, error = _load_owned_record(record_id, current_user_id())
    if error:
        return error
    return jsonify(record.serialize()), 200


@bp.put("/maintenance/<int:record_id>")
@jwt_required()
def update_maintenance(record_id):
    user_id = current_user_id()
    record, error = _load_owned_record(record_id, user_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    data.pop("property_id", None)
    previous_status = record.status

    try:
        _apply_fields(record, data)
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": "validation_error", "message": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "update_failed", "message": str(e)}), 500

    if record.status == "completed" and previous_status != "completed":
        notification_service.create_maintenance_completed(user_id, record.id)

    return jsonify(record.serialize()), 200


@bp.delete("/maintenance/<int:record_id>")
@jwt_required()
def delete_maintenance(record_id):
    record, error = _load_owned_record(record_id, current_user_id())
    if error:
        return error

    try:
        db.session.delete(record)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "deletion_failed", "message": str(e)}), 500

    return "", 204
