import pytest

from equitystek_backend import create_app
from equitystek_backend.config import Config
from equitystek_backend.models import User


class TestHealth:

    def test_health(self, client):
        resp = client.get("/api/health")

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "ok"
        assert body["service"] == "equitystek-backend"
        assert body["data_region"] == "Australia"

    def test_data_residency_headers(self, client):
        resp = client.get("/api/health")

        assert resp.headers["X-Data-Location"] == "Australia"
        assert resp.headers["X-Privacy-Policy-Version"] == "1.0"

    def test_unknown_route_json_404(self, client):
        resp = client.get("/api/nothing-here")

        assert resp.status_code == 404
        assert resp.get_json()["error"] == "not_found"


class TestConfig:

    def test_production_config_requires_secrets(self, monkeypatch):
        monkeypatch.setattr(Config, "SECRET_KEY", None)
        monkeypatch.setattr(Config, "DEBUG", False)

        with pytest.raises(ValueError):
            create_app(Config)


class TestCli:

    def test_seed_plans(self, app):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["seed-plans"])
        second = runner.invoke(args=["seed-plans"])

        assert "Created 3 subscription plans" in first.output
        assert "already exist" in second.output

    def test_create_admin_promotes_existing_user(self, app, owner):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["create-admin", owner.email, owner.username, "N3w!Password"])

        assert "Updated admin" in result.output
        user = User.query.filter_by(email=owner.email).one()
        assert user.role == "admin"
        assert user.check_password("N3w!Password")
