from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from nutritrack.config import Settings
from nutritrack.core.csrf import CSRF_COOKIE, CSRF_HEADER
from nutritrack.core.database import init_db
from nutritrack.main import create_app
from nutritrack.schemas.user import AccessLevel

TEST_PASSWORD = "correct-horse-battery"


def _make_settings(**overrides) -> Settings:
    values = {
        "ENVIRONMENT": "test",
        "DATABASE_URL": "sqlite://",
        "DB_INIT_MODE": "create_all",
        "JWT_SECRET": "test-access-secret-0123456789abcdef0123",
        "JWT_REFRESH_SECRET": "test-refresh-secret-0123456789abcdef012",
        "PASSWORD_SALT_ROUNDS": 4,
        "CREATE_ADMIN_ON_STARTUP": False,
        "LOG_LEVEL": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeClock:
    """Settable naive-UTC clock for services that accept ``clock=``."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def make_settings():
    return _make_settings


@pytest.fixture
def settings():
    return _make_settings()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def services(app, settings):
    services = app.state.services
    init_db(services.engine, settings)
    return services


@pytest.fixture
def client(app):
    # Auth cookies are Secure, so the client must talk https
    with TestClient(app, base_url="https://testserver") as test_client:
        yield test_client


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 12, 0, 0))


@pytest.fixture
def create_user(services):
    def _create(username="alice", password=TEST_PASSWORD, email=None, access_level=AccessLevel.TRIAL_USER):
        return services.accounts.register(
            username,
            email or f"{username}@example.com",
            password,
            access_level=access_level,
        )

    return _create


@pytest.fixture
def csrf_headers(client):
    """Fetch a CSRF cookie into the client's jar and return the matching header."""
    def _fetch():
        response = client.get("/api/auth/csrf-token")
        assert response.status_code == 204
        return {CSRF_HEADER: response.cookies[CSRF_COOKIE]}

    return _fetch


@pytest.fixture
def login(client, csrf_headers):
    def _login(username="alice", password=TEST_PASSWORD):
        return client.post(
            "/api/auth/login",
            json={"username": username, "password": password},
            headers=csrf_headers(),
        )

    return _login
