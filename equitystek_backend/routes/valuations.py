from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from ..extensions import db
from ..models import Valuation
from ..security import current_user_id
from ..services import notification_service
from ..services.valuation import estimate_valuation, latest_valuation, save_valuation
from ..utils.validation import to_float
from .common import load_owned_property

bp = Blueprint("valuations", __name__)


@bp.get("/valuations/<int:property_id>")
@jwt_required()
def get_latest_valuation(property_id):
    _, error = load_owned_property(property_id, current_user_id())
    if error:
        return error

    valuation = latest_valuation(property_id)
    if valuation is None:
        return jsonify({"error": "not_found", "message": "No valuation found for this property"}), 404
    return jsonify(valuation.serialize()), 200


@bp.get("/valuations/<int:property_id>/history")
@jwt_required()
def valuation_history(property_id):
    _, error = load_owned_property(property_id, current_user_id())
    if error:
        return error

    valuations = (
        Valuation.query.filter_by(property_id=property_id)
        .order_by(Valuation.created_at.desc(), Valuation.id.desc())
        .all()
    )
    return jsonify([v.serialize() for v in valuations]), 200


@bp.post("/valuations")
@jwt_required()
def create_valuation():
    user_id = current_user_id()
    data = request.get_json(silent=True) or {}

    for field in ("property_id", "equitystek_value"):
        if data.get(field) is None:
            return jsonify({"error": "validation_error", "message": f"{field} is required"}), 400

    try:
        property_id = int(data["property_id"])
        values = {field: to_float(data.get(field), field) for field in Valuation.METHOD_FIELDS}
        values["equitystek_value"] = to_float(data["equitystek_value"], "equitystek_value")
    except (TypeError, ValueError) as e:
        return jsonify({"error": "validation_error", "message": str(e)}), 400

    _, error = load_owned_property(property_id, user_id)
    if error:
        return error

    try:
        valuation = save_valuation(property_id, values)
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "creation_failed", "message": str(e)}), 500

    notification_service.create_valuation_update(user_id, property_id, valuation.equitystek_value)
    return jsonify(valuation.serialize()), 201


@bp.get("/valuations/<int:property_id>/estimate")
@jwt_required()
def estimate(property_id):
    """Compute a valuation from property attributes; ?save=true stores it"""
    user_id = current_user_id()
    prop, error = load_owned_property(property_id, user_id)
    if error:
        return error

    values = estimate_valuation(prop)
    if request.args.get("save", "").lower() not in ("1", "true", "yes"):
        return jsonify({"property_id": property_id, **values}), 200

    try:
        valuation = save_valuation(property_id, values)
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "creation_failed", "message": str(e)}), 500

    notification_service.create_valuation_update(user_id, property_id, valuation.equitystek_value)
    return jsonify(valuation.serialize()), 201
