from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from authcore.auth.jwt import TokenIssuer
from authcore.core.config import Settings
from authcore.main import create_app
from authcore.repositories import InMemoryUserStore
from authcore.services import AuthService

TEST_SECRET = "test-signing-secret-that-is-long-enough-for-hs256"

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "AdminPass1!"
USER_PASSWORD = "Valid1Pass!"


def make_settings(**overrides) -> Settings:
    values = dict(
        jwt_secret=TEST_SECRET,
        app_env="test",
        app_name="authcore-test",
        access_token_ttl=timedelta(minutes=15),
        log_level="WARNING",
        log_json=False,
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
        admin_first_name="Ada",
        admin_last_name="Admin",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def store():
    return InMemoryUserStore()


@pytest.fixture
def tokens(settings):
    return TokenIssuer.from_settings(settings)


@pytest.fixture
def service(store, tokens):
    return AuthService(store, tokens)


@pytest.fixture
def app(settings, store):
    return create_app(settings, store=store)


@pytest.fixture
def client(app):
    # The context manager runs the lifespan, which seeds the admin account.
    with TestClient(app) as c:
        yield c


def register(client, email="jane@example.com", password=USER_PASSWORD, **extra):
    body = {"email": email, "password": password, "first_name": "Jane", "last_name": "Doe"}
    body.update(extra)
    return client.post("/auth/register", json=body)


def login(client, email, password):
    return client.post("/auth/login", json={"email": email, "password": password})


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_session(client):
    """A registered user and its login response body."""
    assert register(client).status_code == 201
    response = login(client, "jane@example.com", USER_PASSWORD)
    assert response.status_code == 200
    return response.json()


@pytest.fixture
def admin_session(client):
    response = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    assert response.status_code == 200
    return response.json()
