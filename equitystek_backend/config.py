import os
from datetime import timedelta


def _bool_env(name, default="False"):
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class Config:
    # Secret key for sessions / JWT - REQUIRED in production
    SECRET_KEY = os.environ.get("SECRET_KEY")

    # Database connection - REQUIRED in production
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # JWT Configuration
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", SECRET_KEY)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=int(os.environ.get("JWT_ACCESS_TOKEN_EXPIRES_HOURS", 12)))
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=30)

    # Flask Configuration
    FLASK_ENV = os.environ.get("FLASK_ENV", "production")
    DEBUG = _bool_env("FLASK_DEBUG")
    JSON_SORT_KEYS = False
    API_PREFIX = "/api"

    # Stripe
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")
    STRIPE_PRICE_ID = os.environ.get("STRIPE_PRICE_ID")
    STRIPE_CURRENCY = os.environ.get("STRIPE_CURRENCY", "usd")

    # Uploads
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", os.path.join(os.getcwd(), "uploads"))
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_CONTENT_LENGTH", 30 * 1024 * 1024))

    # Mail
    MAIL_SERVER = os.environ.get("MAIL_SERVER")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", 587))
    MAIL_USE_TLS = _bool_env("MAIL_USE_TLS", "True")
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER", "no-reply@equitystek.com")
    MAIL_SUPPRESS_SEND = not os.environ.get("MAIL_SERVER")

    # Data sovereignty reporting
    DATA_REGION = os.environ.get("DATA_REGION", "Australia")
    PRIVACY_POLICY_VERSION = "1.0"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls):
        if not cls.SECRET_KEY:
            raise ValueError("SECRET_KEY environment variable must be set")
        if not cls.SQLALCHEMY_DATABASE_URI:
            raise ValueError("DATABASE_URL environment variable must be set")


class DevelopmentConfig(Config):
    FLASK_ENV = "development"
    DEBUG = True
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret")
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", SECRET_KEY)
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///equitystek-dev.db")


class TestingConfig(Config):
    TESTING = True
    FLASK_ENV = "testing"
    SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    JWT_SECRET_KEY = SECRET_KEY
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    STRIPE_SECRET_KEY = None
    STRIPE_WEBHOOK_SECRET = None
    STRIPE_PRICE_ID = None
    MAIL_SUPPRESS_SEND = True
    MAIL_SERVER = None
    LOG_LEVEL = "WARNING"
