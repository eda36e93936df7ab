import re
import time
from functools import wraps

from flask import current_app, jsonify, request

# Per-process stores; a multi-worker deployment sees per-worker limits.
rate_limit_store = {}
failed_login_attempts = {}

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{}|;:,.<>?"


def client_ip():
    forwarded = request.environ.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr or "unknown"


class SecurityEnforcer:
    """Rate limiting, lockout tracking and password policy for the auth routes"""

    LOCKOUT_WINDOW_SECONDS = 3600

    @staticmethod
    def rate_limit(max_requests=5, window_minutes=15):
        """Rate limiting decorator"""
        def decorator(f):
            @wraps(f)
            def wrapper(*args, **kwargs):
                key = f"rate_limit:{client_ip()}:{f.__name__}"

                current_time = time.time()
                window_start = current_time - (window_minutes * 60)

                # Clean old entries and count current requests
                recent = [ts for ts in rate_limit_store.get(key, []) if ts > window_start]
                rate_limit_store[key] = recent

                if len(recent) >= max_requests:
                    current_app.logger.warning("Rate limit exceeded for %s", key)
                    return jsonify({
                        "error": "rate_limit_exceeded",
                        "message": f"Too many requests. Try again in {window_minutes} minutes."
                    }), 429

                recent.append(current_time)
                return f(*args, **kwargs)
            return wrapper
        return decorator

    @staticmethod
    def _recent_failures(key):
        cutoff = time.time() - SecurityEnforcer.LOCKOUT_WINDOW_SECONDS
        attempts = [ts for ts in failed_login_attempts.get(key, []) if ts > cutoff]
        failed_login_attempts[key] = attempts
        return attempts

    @staticmethod
    def track_failed_login(identifier, ip_address):
        """Track failed login attempts; returns the count inside the window"""
        key = f"{identifier}:{ip_address}"
        attempts = SecurityEnforcer._recent_failures(key)
        attempts.append(time.time())
        return len(attempts)

    @staticmethod
    def is_account_locked(identifier, ip_address, max_attempts=5):
        return len(SecurityEnforcer._recent_failures(f"{identifier}:{ip_address}")) >= max_attempts

    @staticmethod
    def clear_failed_attempts(identifier, ip_address):
        failed_login_attempts.pop(f"{identifier}:{ip_address}", None)

    @staticmethod
    def require_strong_password(password):
        """Validate password strength"""
        if len(password) < 8:
            return False, "Password must be at least 8 characters long"

        if not any(c.isupper() for c in password):
            return False, "Password must contain at least one uppercase letter"

        if not any(c.islower() for c in password):
            return False, "Password must contain at least one lowercase letter"

        if not any(c.isdigit() for c in password):
            return False, "Password must contain at least one number"

        if not any(c in SPECIAL_CHARACTERS for c in password):
            return False, "Password must contain at least one special character"

        return True, "Password is strong"

    @staticmethod
    def log_security_event(event_type, user_id=None, ip_address=None, details=None):
        """Log security events for auditing"""
        current_app.logger.info(
            "security_event type=%s user=%s ip=%s details=%s", event_type, user_id, ip_address, details
        )

    @staticmethod
    def is_valid_email(email):
        return bool(EMAIL_PATTERN.match(email or ""))

    @staticmethod
    def reset():
        rate_limit_store.clear()
        failed_login_attempts.clear()
