"""
pytest configuration: an app on TestingConfig with a fresh in-memory
database per test, plus factories for users, properties and subscriptions.
"""
import io

import pytest
from flask_jwt_extended import create_access_token
from PIL import Image

from equitystek_backend import create_app
from equitystek_backend.config import TestingConfig
from equitystek_backend.extensions import db
from equitystek_backend.models import Property, Subscription, User
from equitystek_backend.security import SecurityEnforcer
from equitystek_backend.services import billing

PASSWORD = "Str0ng!Pass"


@pytest.fixture
def app(tmp_path):
    class _Config(TestingConfig):
        UPLOAD_FOLDER = str(tmp_path / "uploads")

    app = create_app(_Config)
    SecurityEnforcer.reset()

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make_user(role="owner", **kwargs):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=kwargs.pop("email", f"user{n}@example.com"),
            username=kwargs.pop("username", f"user{n}"),
            role=role,
            **kwargs,
        )
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def auth_headers(app):
    def _auth_headers(user):
        token = create_access_token(identity=str(user.id), additional_claims={"role": user.role})
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
def owner(make_user):
    return make_user("owner", full_name="Olivia Owner")


@pytest.fixture
def admin(make_user):
    return make_user("admin", username="admin", email="admin@example.com")


@pytest.fixture
def make_property(app):
    def _make_property(user, **kwargs):
        values = {
            "address": "12 Harbour St",
            "city": "Sydney",
            "state": "NSW",
            "zip_code": "2000",
            "property_type": "single_family",
        }
        values.update(kwargs)
        prop = Property(user_id=user.id, **values)
        db.session.add(prop)
        db.session.commit()
        return prop

    return _make_property


@pytest.fixture
def plans(app):
    created, _ = billing.initialize_subscription_plans()
    return {p.name: p for p in created}


@pytest.fixture
def subscribe(app):
    def _subscribe(user, plan, property_count=1, **kwargs):
        subscription = Subscription(
            user_id=user.id,
            plan_id=plan.id,
            property_count=property_count,
            current_price=billing.calculate_subscription_price(plan, property_count),
            billing_cycle=plan.billing_cycle,
            next_billing_date=billing.next_billing_date(),
            **kwargs,
        )
        db.session.add(subscription)
        db.session.commit()
        return subscription

    return _subscribe


def png_bytes(size=(100, 80), color=(200, 30, 30)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    buf.seek(0)
    return buf


@pytest.fixture
def png():
    return png_bytes
