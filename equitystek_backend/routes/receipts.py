import random
import uuid

from flask import Blueprint, current_app, jsonify, make_response
from flask_jwt_extended import jwt_required

from ..extensions import db
from ..models import Receipt
from ..security import current_user_id
from ..services import receipts as receipt_service

bp = Blueprint("receipts", __name__)


def _load_own_receipt(receipt_id, user_id):
    receipt = db.session.get(Receipt, receipt_id)
    if receipt is None:
        return None, (jsonify({"error": "not_found", "message": "Receipt not found"}), 404)
    if receipt.user_id != user_id:
        return None, (jsonify({"error": "forbidden", "message": "Forbidden"}), 403)
    return receipt, None


@bp.get("/receipts")
@jwt_required()
def list_receipts():
    receipts = (
        Receipt.query.filter_by(user_id=current_user_id())
        .order_by(Receipt.created_at.desc(), Receipt.id.desc())
        .all()
    )
    return jsonify([r.serialize() for r in receipts]), 200


@bp.get("/receipts/<int:receipt_id>")
@jwt_required()
def get_receipt(receipt_id):
    receipt, error = _load_own_receipt(receipt_id, current_user_id())
    if error:
        return error
    return jsonify(receipt.serialize()), 200


@bp.get("/receipts/<int:receipt_id>/download")
@jwt_required()
def download_receipt(receipt_id):
    receipt, error = _load_own_receipt(receipt_id, current_user_id())
    if error:
        return error

    response = make_response(receipt_service.render_receipt_html(receipt))
    response.headers["Content-Type"] = "text/html; charset=utf-8"
    response.headers["Content-Disposition"] = f'attachment; filename="receipt_{receipt.receipt_number}.html"'
    return response


@bp.post("/receipts/generate-test")
@jwt_required()
def generate_test_receipt():
    """Development helper: create a random paid receipt for the current user"""
    if not (current_app.config.get("DEBUG") or current_app.config.get("TESTING")):
        return jsonify({"error": "not_found", "message": "Not available"}), 404

    is_subscription = random.random() > 0.5
    amount = 49.99 if is_subscription else 29.99
    name = "Equitystek Subscription" if is_subscription else "Property Valuation Service"

    receipt = receipt_service.create_receipt(
        user_id=current_user_id(),
        amount=amount,
        currency="AUD",
        description="Monthly Subscription" if is_subscription else "One-time Service Fee",
        receipt_type="subscription" if is_subscription else "one_time",
        payment_method="Credit Card",
        payment_status="paid",
        stripe_payment_intent_id=f"test_pi_{uuid.uuid4().hex[:13]}",
        items={"items": [{"name": name, "amount": amount}]},
    )
    return jsonify(receipt.serialize()), 201
