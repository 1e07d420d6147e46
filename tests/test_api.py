import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from authcore.auth.password import MSG_NO_UPPER
from authcore.core.errors import InternalError
from authcore.main import create_app
from authcore.models.user import UserRole
from authcore.repositories import InMemoryUserStore

from conftest import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    USER_PASSWORD,
    bearer,
    login,
    make_settings,
    register,
)

USER_FIELDS = {"id", "email", "first_name", "last_name", "role", "is_active", "created_at", "updated_at"}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "in_memory"}
    assert "X-Request-ID" in response.headers
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"


# =============================================================================
# Register
# =============================================================================

def test_register(client):
    response = register(client, email="  Jane@Example.com")
    assert response.status_code == 201

    data = response.json()
    assert set(data) == USER_FIELDS
    assert data["email"] == "jane@example.com"
    assert data["role"] == "user"
    assert data["is_active"] is True
    assert "password" not in response.text
    assert "argon2" not in response.text


def test_register_ignores_role_in_body(client):
    response = register(client, role="admin")
    assert response.status_code == 201
    assert response.json()["role"] == "user"


def test_register_duplicate_email(client):
    assert register(client).status_code == 201

    response = register(client, email="JANE@example.com")
    assert response.status_code == 409
    assert response.json()["error_code"] == "duplicate_email"


def test_register_weak_password(client):
    response = register(client, password="alllowercase1!")
    assert response.status_code == 400

    data = response.json()
    assert data["error_code"] == "weak_password"
    assert data["detail"] == MSG_NO_UPPER
    assert data["errors"] == [{"field": "password", "reason": MSG_NO_UPPER}]


def test_register_invalid_body_lists_every_field(client):
    response = client.post("/auth/register", json={"email": "not-an-email", "first_name": " "})
    assert response.status_code == 400

    data = response.json()
    assert data["error_code"] == "validation_error"
    fields = [e["field"] for e in data["errors"]]
    assert fields == ["email", "password", "first_name", "last_name"]


def test_register_wrong_types_is_400(client):
    response = client.post("/auth/register", json={"email": ["x"], "password": 123})
    assert response.status_code == 400
    assert response.json()["error_code"] == "validation_error"


def test_register_non_json_body_is_400(client):
    response = client.post(
        "/auth/register",
        content="not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400


def test_concurrent_registration_one_201_one_409(settings):
    store = InMemoryUserStore()
    app = create_app(settings, store=store)
    body = {"email": "race@example.com", "password": USER_PASSWORD, "first_name": "R", "last_name": "C"}

    async def race():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            return await asyncio.gather(
                ac.post("/auth/register", json=body),
                ac.post("/auth/register", json=body),
            )

    responses = asyncio.run(race())
    assert sorted(r.status_code for r in responses) == [201, 409]


# =============================================================================
# Login / refresh / logout
# =============================================================================

def test_login(client, user_session):
    assert set(user_session) == {"token", "refresh_token", "token_type", "expires_in", "user"}
    assert user_session["token_type"] == "bearer"
    assert user_session["expires_in"] == 15 * 60
    assert user_session["user"]["email"] == "jane@example.com"


def test_login_failures_are_identical(client):
    assert register(client).status_code == 201

    wrong_password = login(client, "jane@example.com", "Wrong1Pass!")
    unknown_email = login(client, "nobody@example.com", USER_PASSWORD)

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()
    assert wrong_password.headers["WWW-Authenticate"] == "Bearer"


def test_login_bad_body(client):
    response = client.post("/auth/login", json={"email": "jane@example.com"})
    assert response.status_code == 400
    assert response.json()["errors"] == [{"field": "password", "reason": "password is required"}]


def test_refresh_and_rotation(client, user_session):
    first = user_session["refresh_token"]

    response = client.post("/auth/refresh", json={"refresh_token": first})
    assert response.status_code == 200
    second = response.json()["refresh_token"]
    assert second != first

    assert client.post("/auth/refresh", json={"refresh_token": first}).status_code == 401
    assert client.post("/auth/refresh", json={"refresh_token": second}).status_code == 200


def test_logout(client, user_session):
    headers = bearer(user_session["token"])
    response = client.post("/auth/logout", headers=headers)
    assert response.status_code == 200

    response = client.post("/auth/refresh", json={"refresh_token": user_session["refresh_token"]})
    assert response.status_code == 401
    assert response.json()["error_code"] == "invalid_token"


def test_logout_requires_token(client):
    assert client.post("/auth/logout").status_code == 401


# =============================================================================
# Passwords
# =============================================================================

def test_change_password(client, user_session):
    headers = bearer(user_session["token"])

    response = client.post(
        "/auth/change-password",
        json={"old_password": "Wrong1Pass!", "new_password": "Changed2Pass!"},
        headers=headers,
    )
    assert response.status_code == 401

    response = client.post(
        "/auth/change-password",
        json={"old_password": USER_PASSWORD, "new_password": "Changed2Pass!"},
        headers=headers,
    )
    assert response.status_code == 200
    assert login(client, "jane@example.com", "Changed2Pass!").status_code == 200


def test_change_password_weak(client, user_session):
    response = client.post(
        "/auth/change-password",
        json={"old_password": USER_PASSWORD, "new_password": "short"},
        headers=bearer(user_session["token"]),
    )
    assert response.status_code == 400
    assert response.json()["error_code"] == "weak_password"


def test_forgot_and_reset_password(client):
    assert register(client).status_code == 201

    response = client.post("/auth/forgot-password", json={"email": "jane@example.com"})
    assert response.status_code == 202
    token = response.json()["reset_token"]

    response = client.post("/auth/reset-password", json={"token": token, "new_password": "Reset3Pass!"})
    assert response.status_code == 200
    assert login(client, "jane@example.com", "Reset3Pass!").status_code == 200

    response = client.post("/auth/reset-password", json={"token": token, "new_password": "Again4Pass!"})
    assert response.status_code == 401


def test_forgot_password_unknown_email_looks_the_same(client):
    response = client.post("/auth/forgot-password", json={"email": "nobody@example.com"})
    assert response.status_code == 202
    assert "reset_token" not in response.json()


def test_forgot_password_hides_token_in_production(store):
    app = create_app(make_settings(app_env="production"), store=store)
    with TestClient(app) as c:
        assert register(c).status_code == 201
        response = c.post("/auth/forgot-password", json={"email": "jane@example.com"})

    assert response.status_code == 202
    assert "reset_token" not in response.json()


# =============================================================================
# Profile
# =============================================================================

def test_get_profile(client, user_session):
    response = client.get("/user/profile", headers=bearer(user_session["token"]))
    assert response.status_code == 200
    assert response.json() == user_session["user"]


def test_get_profile_without_token(client):
    response = client.get("/user/profile")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_get_profile_for_unknown_user(client, tokens):
    token = tokens.issue(999, UserRole.USER)
    response = client.get("/user/profile", headers=bearer(token))
    assert response.status_code == 404
    assert response.json()["error_code"] == "not_found"


def test_update_profile(client, user_session):
    headers = bearer(user_session["token"])

    response = client.patch("/user/profile", json={"last_name": "Smith"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["last_name"] == "Smith"
    assert response.json()["first_name"] == "Jane"

    response = client.patch("/user/profile", json={"first_name": "  "}, headers=headers)
    assert response.status_code == 400


# =============================================================================
# Admin
# =============================================================================

def test_admin_seeded_at_startup(admin_session):
    assert admin_session["user"]["role"] == "admin"
    assert admin_session["user"]["email"] == ADMIN_EMAIL


def test_admin_register(client, admin_session):
    response = client.post(
        "/admin/register",
        json={
            "email": "mod@example.com",
            "password": USER_PASSWORD,
            "first_name": "Mo",
            "last_name": "Derator",
            "role": "moderator",
        },
        headers=bearer(admin_session["token"]),
    )
    assert response.status_code == 201
    assert response.json()["role"] == "moderator"


def test_admin_register_invalid_role(client, admin_session):
    response = client.post(
        "/admin/register",
        json={
            "email": "x@example.com",
            "password": USER_PASSWORD,
            "first_name": "X",
            "last_name": "Y",
            "role": "superuser",
        },
        headers=bearer(admin_session["token"]),
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "role"


def test_admin_register_duplicate(client, admin_session):
    response = client.post(
        "/admin/register",
        json={
            "email": ADMIN_EMAIL.upper(),
            "password": ADMIN_PASSWORD,
            "first_name": "A",
            "last_name": "B",
            "role": "user",
        },
        headers=bearer(admin_session["token"]),
    )
    assert response.status_code == 409


def test_admin_routes_reject_non_admin(client, user_session):
    headers = bearer(user_session["token"])
    assert client.get("/admin/dashboard", headers=headers).status_code == 403

    response = client.post(
        "/admin/register",
        json={"email": "a@example.com", "password": USER_PASSWORD, "first_name": "A", "last_name": "B", "role": "admin"},
        headers=headers,
    )
    assert response.status_code == 403


def test_admin_routes_require_token(client):
    assert client.get("/admin/dashboard").status_code == 401


def test_admin_dashboard(client, admin_session):
    response = client.get("/admin/dashboard", headers=bearer(admin_session["token"]))
    assert response.status_code == 200
    data = response.json()
    assert data["role"] == "admin"
    assert data["user_id"] == admin_session["user"]["id"]


# =============================================================================
# Errors
# =============================================================================

def test_unhandled_errors_are_sanitized(settings, store):
    app = create_app(settings, store=store)

    @app.get("/boom")
    async def boom():
        raise RuntimeError("database password is hunter2")

    with TestClient(app, raise_server_exceptions=False) as c:
        response = c.get("/boom")

    assert response.status_code == 500
    data = response.json()
    assert data["detail"] == "An internal error occurred"
    assert "request_id" in data
    assert "hunter2" not in response.text


def test_internal_errors_hide_their_message(client, store, monkeypatch):
    async def failing_create(new_user, password_hash):
        raise InternalError("disk full at /var/lib/authcore")

    monkeypatch.setattr(store, "create", failing_create)

    response = register(client)
    assert response.status_code == 500
    assert response.json() == {"detail": "An internal error occurred", "error_code": "internal_error"}


def test_error_shape_is_documented(client):
    schema = client.get("/openapi.json").json()

    assert "ErrorResponse" in schema["components"]["schemas"]
    responses = schema["paths"]["/auth/login"]["post"]["responses"]
    assert responses["401"]["content"]["application/json"]["schema"] == {
        "$ref": "#/components/schemas/ErrorResponse"
    }
    assert "409" in schema["paths"]["/admin/register"]["post"]["responses"]


@pytest.mark.parametrize("path", ["/docs", "/openapi.json"])
def test_docs_can_be_disabled(store, path):
    app = create_app(make_settings(enable_docs=False), store=store)
    with TestClient(app) as c:
        assert c.get(path).status_code == 404
