# equitystek_backend/errors.py
from flask import current_app, jsonify, request


class BillingError(Exception):
    """Base class for subscription and pricing failures."""


class PlanNotFound(BillingError):
    pass


class SubscriptionNotFound(BillingError):
    pass


class PlanLimitExceeded(BillingError):
    def __init__(self, max_properties, requested):
        self.max_properties = max_properties
        self.requested = requested
        super().__init__(f"This plan only supports up to {max_properties} properties")


class StripeNotConfigured(BillingError):
    pass


class UploadError(ValueError):
    """Rejected upload (missing file, bad type, unreadable image)."""


def register_error_handlers(app):
    @app.errorhandler(400)
    def bad_request(e):
        msg = getattr(e, "description", "Bad Request")
        return jsonify(error="bad_request", message=msg), 400

    @app.errorhandler(401)
    def unauthorized(e): return jsonify(error="unauthorized"), 401

    @app.errorhandler(403)
    def forbidden(e): return jsonify(error="forbidden"), 403

    @app.errorhandler(404)
    def not_found(e): return jsonify(error="not_found", path=request.path), 404

    @app.errorhandler(405)
    def method_not_allowed(e): return jsonify(error="method_not_allowed"), 405

    @app.errorhandler(413)
    def too_large(e): return jsonify(error="payload_too_large"), 413

    @app.errorhandler(422)
    def unprocessable(e): return jsonify(error="unprocessable"), 422

    @app.errorhandler(500)
    def server_error(e):
        current_app.logger.exception("Unhandled exception: %s", e)
        return jsonify(error="server_error"), 500
