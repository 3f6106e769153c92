import pytest
from fastapi.testclient import TestClient

from nutritrack.main import create_app
from nutritrack.schemas.user import AccessLevel


def test_health_reports_database(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["readiness"]["database"]["ok"] is True


def test_security_headers_on_every_response(client):
    response = client.get("/")

    assert response.headers["Content-Security-Policy"] == "default-src 'self'"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "max-age" in response.headers["Strict-Transport-Security"]
    assert response.headers["Referrer-Policy"]
    assert response.headers["X-Request-ID"]


def test_request_id_is_echoed(client):
    response = client.get("/", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_metrics_exposes_auth_events(client, create_user, login):
    create_user()
    login()

    response = client.get("/metrics")

    assert response.status_code == 200
    assert 'nutritrack_auth_events_total{event="login_success"}' in response.text


def test_admin_bootstrap_on_startup(make_settings):
    app = create_app(make_settings(CREATE_ADMIN_ON_STARTUP=True, ADMIN_PASSWORD="bootstrap-admin-pass"))
    with TestClient(app, base_url="https://testserver"):
        admin = app.state.services.users.find_by_identifier("admin")

    assert admin is not None
    assert admin.access_level == AccessLevel.ADMIN
    assert app.state.services.hasher.verify("bootstrap-admin-pass", admin.password)


def test_production_rejects_insecure_defaults(make_settings):
    with pytest.raises(ValueError):
        make_settings(ENVIRONMENT="production", JWT_SECRET="change-me").validate_security_settings()
    with pytest.raises(ValueError):
        make_settings(ENVIRONMENT="production", JWT_REFRESH_SECRET=None).validate_security_settings()

    make_settings(
        ENVIRONMENT="production",
        ADMIN_PASSWORD="a-long-and-unguessable-password",
    ).validate_security_settings()


def test_cors_origins_accept_comma_separated_values(make_settings):
    settings = make_settings(CORS_ORIGINS="https://a.example, https://b.example")
    assert settings.CORS_ORIGINS == ["https://a.example", "https://b.example"]
