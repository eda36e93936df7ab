# equitystek_backend/security/rbac.py
from functools import wraps

from flask import abort, jsonify
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from ..extensions import db
from ..models import User


def current_user_id() -> int:
    """Identity is stored as a string ("sub" must be str for PyJWT)."""
    return int(get_jwt_identity())


def get_current_user() -> User:
    user = db.session.get(User, current_user_id())
    if user is None or not user.is_active:
        abort(401)
    return user


def require_role(*allowed):
    """Usage: @require_role("admin") or @require_role("owner", "investor")"""
    if len(allowed) == 1 and isinstance(allowed[0], (list, tuple)):
        allowed = tuple(allowed[0])

    def deco(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            # Role changes apply to tokens already issued
            user = get_current_user()
            if user.role not in allowed:
                return jsonify({"error": "forbidden", "message": f"{' or '.join(allowed)} role required"}), 403
            return fn(*args, **kwargs)
        return wrapper
    return deco


def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        user = get_current_user()
        if user.role != "admin":
            return jsonify({"error": "forbidden", "message": "Admin access required"}), 403
        return fn(*args, **kwargs)
    return wrapper
