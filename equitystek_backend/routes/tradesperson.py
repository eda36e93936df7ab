import json
import posixpath

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from ..errors import UploadError
from ..extensions import db
from ..models import MAINTENANCE_CATEGORIES, MaintenanceRecord, Property, User
from ..security import current_user_id, require_role
from ..services import notification_service, uploads
from ..utils.validation import parse_datetime, to_float

bp = Blueprint("tradesperson", __name__)

MAX_WORK_IMAGES = 5
MIN_DESCRIPTION_LENGTH = 10


def _parse_work_record(raw):
    """Validate the JSON ``workRecord`` form field; returns a dict of clean values."""
    if not raw:
        raise ValueError("workRecord is required")
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        raise ValueError("workRecord must be valid JSON")
    if not isinstance(data, dict):
        raise ValueError("workRecord must be a JSON object")

    try:
        property_id = int(data.get("propertyId"))
    except (TypeError, ValueError):
        raise ValueError("propertyId must be an integer")

    work_type = data.get("workType")
    if work_type not in MAINTENANCE_CATEGORIES:
        raise ValueError(f"workType must be one of: {', '.join(MAINTENANCE_CATEGORIES)}")

    description = data.get("workDescription") or ""
    if not isinstance(description, str):
        raise ValueError("workDescription must be a string")
    description = description.strip()
    if len(description) < MIN_DESCRIPTION_LENGTH:
        raise ValueError(f"workDescription must be at least {MIN_DESCRIPTION_LENGTH} characters")

    completion_date = parse_datetime(data.get("completionDate"))
    if completion_date is None:
        raise ValueError("completionDate is required")

    return {
        "property_id": property_id,
        "work_type": work_type,
        "description": description,
        "completed_date": completion_date,
        "cost": to_float(data.get("cost"), "cost") or 0.0,
    }


def _discard_images(stored):
    for image in stored:
        uploads.delete_upload(image["url"][len("/uploads/"):])


@bp.get("/tradespeople")
def list_tradespeople():
    tradespeople = (
        User.query.filter_by(role="tradesperson", is_active=True)
        .order_by(User.username)
        .all()
    )
    return jsonify([t.serialize_public() for t in tradespeople]), 200


@bp.get("/tradesperson/properties")
@jwt_required()
@require_role("tradesperson")
def tradesperson_properties():
    properties = Property.query.order_by(Property.id).all()
    return jsonify([
        {"id": p.id, "name": p.display_name, "address": p.address}
        for p in properties
    ]), 200


@bp.post("/tradesperson/work-records")
@jwt_required()
@require_role("tradesperson")
def submit_work_record():
    """Record completed work against a property, with up to five photos"""
    tradesperson_id = current_user_id()

    try:
        work = _parse_work_record(request.form.get("workRecord"))
    except ValueError as e:
        return jsonify({"error": "validation_error", "message": str(e)}), 400

    files = [f for f in request.files.getlist("images") if f and f.filename]
    if len(files) > MAX_WORK_IMAGES:
        return jsonify({
            "error": "validation_error",
            "message": f"A maximum of {MAX_WORK_IMAGES} images is allowed"
        }), 400

    prop = db.session.get(Property, work["property_id"])
    if prop is None:
        return jsonify({"error": "not_found", "message": "Property not found"}), 404

    stored = []
    try:
        for f in files:
            url = uploads.save_work_image(f)
            stored.append({"file_name": posixpath.basename(url), "url": url})
    except UploadError as e:
        _discard_images(stored)
        return jsonify({"error": "validation_error", "message": str(e)}), 400

    try:
        record = MaintenanceRecord(
            property_id=prop.id,
            title=f"Maintenance: {work['work_type']}",
            category=work["work_type"],
            description=work["description"],
            completed_date=work["completed_date"],
            cost=work["cost"],
            status="completed",
            priority="medium",
            trade_person_id=tradesperson_id,
            image_urls=stored,
        )
        db.session.add(record)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        _discard_images(stored)
        return jsonify({"error": "creation_failed", "message": str(e)}), 500

    notification_service.create_maintenance_completed(prop.user_id, record.id)
    current_app.logger.info("Tradesperson %s recorded work %s on property %s", tradesperson_id, record.id, prop.id)
    return jsonify(record.serialize_work_record()), 201


@bp.get("/tradesperson/work-records")
@jwt_required()
@require_role("tradesperson")
def list_work_records():
    records = (
        MaintenanceRecord.query.filter_by(trade_person_id=current_user_id())
        .order_by(MaintenanceRecord.completed_date.desc())
        .all()
    )
    return jsonify([r.serialize_work_record() for r in records]), 200
