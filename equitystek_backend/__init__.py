# equitystek_backend/__init__.py
from __future__ import annotations

import importlib
import logging
import os
from datetime import datetime
from typing import Any, Optional

from flask import Flask, jsonify, request, send_from_directory
from flask_jwt_extended import get_jwt_identity
from werkzeug.middleware.proxy_fix import ProxyFix

from .extensions import cors, db, jwt, mail, migrate

DEFAULT_CONFIG = "equitystek_backend.config.Config"

BLUEPRINT_MODULES = (
    "equitystek_backend.routes.auth",
    "equitystek_backend.routes.properties",
    "equitystek_backend.routes.maintenance",
    "equitystek_backend.routes.valuations",
    "equitystek_backend.routes.subscriptions",
    "equitystek_backend.routes.receipts",
    "equitystek_backend.routes.notifications",
    "equitystek_backend.routes.tradesperson",
    "equitystek_backend.routes.documents",
    "equitystek_backend.routes.admin",
)


# --- Config ------------------------------------------------------------------
def _get_allowed_origins() -> list[str]:
    """Allowed CORS origins from env, plus local dev servers."""
    default = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    extra = os.getenv("CORS_ALLOWED_ORIGINS", "")
    extra_list = [o.strip() for o in extra.split(",") if o.strip()]
    return sorted(set(default + extra_list))


def _load_config(app: Flask, config_object: Optional[str | Any]) -> None:
    if config_object is None:
        config_object = os.getenv("CONFIG_CLASS", DEFAULT_CONFIG)

    if isinstance(config_object, str):
        # load "package.module.ClassName"
        module, _, cls = config_object.rpartition(".")
        config_object = getattr(importlib.import_module(module), cls)

    app.config.from_object(config_object)

    if not (app.config.get("TESTING") or app.config.get("DEBUG")) and hasattr(config_object, "validate"):
        config_object.validate()


def _configure_logging(app: Flask) -> None:
    """JSON logs to stdout."""
    level = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    app.logger.setLevel(level)
    root = logging.getLogger()
    root.setLevel(level)

    # avoid duplicate handlers in reloaders
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            fmt='{"ts":"%(asctime)s","level":"%(levelname)s","msg":"%(message)s","name":"%(name)s"}',
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)


def _configure_cors(app: Flask) -> None:
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": _get_allowed_origins()}},
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Stripe-Signature"],
        expose_headers=["Content-Type", "Content-Disposition"],
        max_age=86400,
    )


def _configure_proxy(app: Flask) -> None:
    """Respect X-Forwarded-* from the load balancer."""
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)  # type: ignore


def _configure_jwt(app: Flask) -> None:
    @jwt.expired_token_loader
    def _expired(jwt_header, jwt_payload):
        return jsonify({"error": "token_expired", "message": "Token has expired"}), 401

    @jwt.invalid_token_loader
    def _invalid(reason):
        return jsonify({"error": "invalid_token", "message": reason}), 401

    @jwt.unauthorized_loader
    def _missing(reason):
        return jsonify({"error": "authorization_required", "message": reason}), 401


def _configure_audit(app: Flask) -> None:
    """Data-access audit line per API request, and data-residency headers on every response."""
    api_prefix = app.config["API_PREFIX"]

    @app.after_request
    def _audit_and_headers(resp):
        if request.path.startswith(api_prefix) and request.method != "OPTIONS":
            try:
                user = get_jwt_identity()
            except RuntimeError:
                # route did not verify a token
                user = None
            app.logger.info(
                "audit method=%s path=%s status=%s user=%s ip=%s",
                request.method, request.path, resp.status_code, user, request.remote_addr,
            )

        resp.headers["X-Data-Location"] = app.config.get("DATA_REGION", "Australia")
        resp.headers["X-Privacy-Policy-Version"] = str(app.config.get("PRIVACY_POLICY_VERSION", "1.0"))
        return resp


def _init_extensions(app: Flask) -> None:
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)


def _register_blueprints(app: Flask) -> None:
    """Register all API blueprints under /api."""
    url_prefix = app.config["API_PREFIX"]
    for module_path in BLUEPRINT_MODULES:
        bp = importlib.import_module(module_path).bp
        app.register_blueprint(bp, url_prefix=url_prefix)
        app.logger.debug("Registered blueprint %s at %s", module_path, url_prefix)


# --- Application Factory ------------------------------------------------------
def create_app(config_object: Optional[str | Any] = None) -> Flask:
    """
    Standard Flask application factory.

    `config_object` may be:
      - a config class
      - dotted path to a config class (e.g., "equitystek_backend.config.DevelopmentConfig")
      - None (then CONFIG_CLASS env, defaulting to equitystek_backend.config.Config)
    """
    app = Flask(__name__, instance_relative_config=True)

    _load_config(app, config_object)
    app.config.setdefault("API_PREFIX", "/api")
    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)

    # Core middleware/logging/CORS
    _configure_logging(app)
    _configure_proxy(app)
    _configure_cors(app)

    # Init extensions & blueprints
    _init_extensions(app)
    _configure_jwt(app)
    _configure_audit(app)
    _register_blueprints(app)

    from .cli import register_cli
    from .errors import register_error_handlers

    register_cli(app)
    register_error_handlers(app)

    # --------- Health, root & uploads ----------
    @app.get(app.config["API_PREFIX"] + "/health")
    def health():
        return jsonify(
            {
                "status": "ok",
                "time": datetime.utcnow().isoformat() + "Z",
                "service": "equitystek-backend",
                "data_region": app.config.get("DATA_REGION", "Australia"),
            }
        ), 200

    @app.get("/")
    def root():
        return jsonify({"service": "equitystek-backend", "message": "See /api/health"}), 200

    @app.get("/uploads/<path:filename>")
    def uploaded_file(filename):
        return send_from_directory(app.config["UPLOAD_FOLDER"], filename)

    return app
