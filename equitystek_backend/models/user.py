from datetime import datetime

from werkzeug.security import check_password_hash, generate_password_hash

from . import db

USER_ROLES = ("owner", "tradesperson", "investor", "admin")


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)

    # Basic Information
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    username = db.Column(db.String(100), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(200), nullable=True)
    phone = db.Column(db.String(20), nullable=True)

    # Authentication
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="owner")  # owner, tradesperson, investor, admin
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Tradesperson details
    specialty_type = db.Column(db.String(100), nullable=True)
    license_number = db.Column(db.String(100), nullable=True)
    experience_years = db.Column(db.Integer, nullable=True)
    rating = db.Column(db.Float, nullable=True)
    verified = db.Column(db.Boolean, default=False)
    profile_image_url = db.Column(db.String(500), nullable=True)

    # Owner details
    property_count = db.Column(db.Integer, nullable=True)  # declared at registration

    # Billing
    stripe_customer_id = db.Column(db.String(80), nullable=True, index=True)
    stripe_subscription_id = db.Column(db.String(80), nullable=True, index=True)

    # Settings
    email_notifications = db.Column(db.Boolean, default=True)

    # Security and Audit Fields
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = db.Column(db.DateTime, nullable=True)
    last_login_ip = db.Column(db.String(45), nullable=True)
    password_changed_at = db.Column(db.DateTime, nullable=True)

    properties = db.relationship("Property", backref="owner", lazy=True)

    def set_password(self, password: str) -> None:
        """Hashes and stores the user's password."""
        self.password_hash = generate_password_hash(password, method="pbkdf2:sha256")
        self.password_changed_at = datetime.utcnow()

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def display_name(self) -> str:
        return self.full_name or self.username

    def serialize(self, include_sensitive=False):
        """Serialize user data for JSON response."""
        data = {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "full_name": self.full_name,
            "phone": self.phone,
            "role": self.role,
            "is_active": self.is_active,
            "specialty_type": self.specialty_type,
            "license_number": self.license_number,
            "property_count": self.property_count,
            "email_notifications": self.email_notifications,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_login": self.last_login.isoformat() if self.last_login else None,
        }

        if include_sensitive:
            data.update({
                "stripe_customer_id": self.stripe_customer_id,
                "stripe_subscription_id": self.stripe_subscription_id,
                "last_login_ip": self.last_login_ip,
                "password_changed_at": self.password_changed_at.isoformat() if self.password_changed_at else None,
                "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            })

        return data

    def serialize_public(self):
        """Directory entry for the tradesperson listing."""
        return {
            "id": self.id,
            "username": self.username,
            "name": self.display_name,
            "email": self.email,
            "specialty": self.specialty_type,
            "phone_number": self.phone,
            "experience": self.experience_years,
            "rating": self.rating,
            "verified": bool(self.verified),
            "profile_image_url": self.profile_image_url,
        }

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role!r}>"
