from datetime import datetime

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import (
    create_access_token, create_refresh_token,
    jwt_required,
)

from ..extensions import db
from ..models import USER_ROLES, User
from ..security import SecurityEnforcer, client_ip, get_current_user
from ..services import notification_service
from ..utils.validation import first_missing, to_int

bp = Blueprint("auth", __name__)

SELF_ASSIGNABLE_ROLES = tuple(r for r in USER_ROLES if r != "admin")
TRADESPERSON_FIELDS = ("specialty_type", "license_number", "experience_years", "phone")


def _issue_tokens(user):
    claims = {"role": user.role, "email": user.email}
    return {
        "access_token": create_access_token(identity=str(user.id), additional_claims=claims),
        "refresh_token": create_refresh_token(identity=str(user.id), additional_claims=claims),
    }


@bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}

    missing = first_missing(data, ("email", "username", "password"))
    if missing:
        return jsonify({"error": "validation_error", "message": f"{missing} is required"}), 400
    for field in ("email", "username", "password"):
        if not isinstance(data[field], str):
            return jsonify({"error": "validation_error", "message": f"{field} must be a string"}), 400

    email = data["email"].strip().lower()
    username = data["username"].strip()
    role = data.get("role") or "owner"

    if not SecurityEnforcer.is_valid_email(email):
        return jsonify({"error": "validation_error", "message": "Invalid email address"}), 400
    if role not in SELF_ASSIGNABLE_ROLES:
        return jsonify({"error": "validation_error", "message": f"Invalid role: {role}"}), 400

    ok, message = SecurityEnforcer.require_strong_password(data["password"])
    if not ok:
        return jsonify({"error": "weak_password", "message": message}), 400

    if User.query.filter_by(username=username).first():
        return jsonify({"error": "duplicate_user", "message": "Username already exists"}), 400
    if User.query.filter_by(email=email).first():
        return jsonify({"error": "duplicate_user", "message": "Email already registered"}), 400

    try:
        user = User(
            email=email,
            username=username,
            full_name=data.get("full_name"),
            role=role,
            property_count=to_int(data.get("property_count"), "property_count"),
        )
        if role == "tradesperson":
            for field in TRADESPERSON_FIELDS:
                if field in data:
                    setattr(user, field, data[field])
            user.experience_years = to_int(user.experience_years, "experience_years")
        user.set_password(data["password"])

        db.session.add(user)
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": "validation_error", "message": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "registration_failed", "message": str(e)}), 500

    notification_service.create_system_notice(
        f"Welcome to Equitystek, {user.display_name}! Start by adding your first property.",
        title="Welcome to Equitystek",
        user_id=user.id,
    )
    current_app.logger.info("Registered user %s (%s)", user.id, user.role)

    return jsonify({"user": user.serialize(), **_issue_tokens(user)}), 201


@bp.post("/login")
@SecurityEnforcer.rate_limit(max_requests=5, window_minutes=15)
def login():
    data = request.get_json(silent=True) or {}
    identifier = data.get("username") or data.get("email") or ""
    password = data.get("password") or ""
    ip_address = client_ip()

    if not isinstance(identifier, str) or not isinstance(password, str):
        return jsonify({"error": "validation_error", "message": "username and password must be strings"}), 400
    identifier = identifier.strip()
    if not identifier or not password:
        return jsonify({"error": "validation_error", "message": "username and password are required"}), 400

    if SecurityEnforcer.is_account_locked(identifier.lower(), ip_address):
        SecurityEnforcer.log_security_event("account_locked_attempt", ip_address=ip_address, details=identifier)
        return jsonify({
            "error": "account_locked",
            "message": "Account temporarily locked due to multiple failed login attempts"
        }), 423

    user = User.query.filter(
        (User.username == identifier) | (User.email == identifier.lower())
    ).first()

    if user is None or not user.check_password(password):
        failed = SecurityEnforcer.track_failed_login(identifier.lower(), ip_address)
        SecurityEnforcer.log_security_event(
            "login_failed", user_id=user.id if user else None, ip_address=ip_address,
            details=f"attempt #{failed} for {identifier}",
        )
        return jsonify({"error": "invalid_credentials", "message": "Invalid username or password"}), 401

    if not user.is_active:
        return jsonify({
            "error": "account_disabled",
            "message": "Your account has been disabled. Please contact support."
        }), 401

    SecurityEnforcer.clear_failed_attempts(identifier.lower(), ip_address)
    user.last_login = datetime.utcnow()
    user.last_login_ip = ip_address
    db.session.commit()

    SecurityEnforcer.log_security_event("login_successful", user_id=user.id, ip_address=ip_address)
    return jsonify({"user": user.serialize(), **_issue_tokens(user)}), 200


@bp.get("/user")
@jwt_required()
def current_user():
    return jsonify(get_current_user().serialize()), 200


@bp.post("/logout")
@jwt_required(optional=True)
def logout():
    # Tokens are stateless; the client discards them
    return jsonify({"message": "Logged out"}), 200


@bp.post("/refresh")
@jwt_required(refresh=True)
def refresh():
    user = get_current_user()
    access_token = create_access_token(
        identity=str(user.id), additional_claims={"role": user.role, "email": user.email}
    )
    return jsonify({"access_token": access_token}), 200
