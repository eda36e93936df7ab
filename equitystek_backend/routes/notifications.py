from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from ..extensions import db
from ..models import Notification
from ..security import current_user_id
from ..services import notification_service

bp = Blueprint("notifications", __name__)


def _load_own_notification(notification_id, user_id):
    notification = db.session.get(Notification, notification_id)
    # Foreign ids are reported as missing so ids can't be enumerated
    if notification is None or notification.user_id != user_id:
        return None
    return notification


@bp.get("/notifications")
@jwt_required()
def list_notifications():
    query = Notification.query.filter_by(user_id=current_user_id())
    if request.args.get("unread", "").lower() in ("1", "true"):
        query = query.filter_by(is_read=False)
    notifications = query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()
    return jsonify([n.serialize() for n in notifications]), 200


@bp.get("/notifications/unread-count")
@jwt_required()
def unread_count():
    count = Notification.query.filter_by(user_id=current_user_id(), is_read=False).count()
    return jsonify({"count": count}), 200


@bp.patch("/notifications/<int:notification_id>/read")
@jwt_required()
def mark_read(notification_id):
    notification = _load_own_notification(notification_id, current_user_id())
    if notification is None:
        return jsonify({"error": "not_found", "message": "Notification not found"}), 404

    notification.is_read = True
    db.session.commit()
    return jsonify(notification.serialize()), 200


@bp.post("/notifications/read-all")
@jwt_required()
def mark_all_read():
    updated = (
        Notification.query.filter_by(user_id=current_user_id(), is_read=False)
        .update({"is_read": True}, synchronize_session=False)
    )
    db.session.commit()
    return jsonify({"message": "All notifications marked as read", "updated": updated}), 200


@bp.delete("/notifications/<int:notification_id>")
@jwt_required()
def delete_notification(notification_id):
    notification = _load_own_notification(notification_id, current_user_id())
    if notification is None:
        return jsonify({"error": "not_found", "message": "Notification not found"}), 404

    db.session.delete(notification)
    db.session.commit()
    return "", 204


@bp.post("/notifications/test")
@jwt_required()
def create_test_notification():
    data = request.get_json(silent=True) or {}
    notification = notification_service.create_system_notice(
        data.get("message") or "This is a test notification.",
        title=data.get("title") or "Test Notification",
        user_id=current_user_id(),
    )
    return jsonify(notification.serialize()), 201
