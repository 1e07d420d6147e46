from datetime import timedelta

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from authcore.auth.dependencies import (
    Principal,
    RoleChecker,
    get_current_principal,
    require_admin,
    require_role,
)
from authcore.auth.jwt import TokenIssuer
from authcore.core.errors import AuthError
from authcore.main import auth_error_handler
from authcore.models.user import UserRole

SECRET = "dependency-test-secret-0123456789"


@pytest.fixture
def issuer():
    return TokenIssuer(SECRET, timedelta(minutes=5), "authcore")


@pytest.fixture
def gate_client(issuer):
    app = FastAPI()
    app.state.token_issuer = issuer
    app.add_exception_handler(AuthError, auth_error_handler)

    @app.get("/me")
    async def me(request: Request, principal: Principal = Depends(get_current_principal)):
        assert request.state.principal == principal
        return {"user_id": principal.user_id, "role": principal.role.value}

    @app.get("/admin")
    async def admin(principal: Principal = Depends(require_admin)):
        return {"ok": True}

    @app.get("/staff")
    async def staff(principal: Principal = Depends(require_role(UserRole.ADMIN, UserRole.MODERATOR))):
        return {"ok": True}

    return TestClient(app)


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


def test_no_header_is_401(gate_client):
    response = gate_client.get("/me")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json()["error_code"] == "unauthorized"


@pytest.mark.parametrize(
    "header",
    ["Token abc", "Bearer", "Bearer a b", "Basic dXNlcjpwYXNz", ""],
)
def test_malformed_header_is_401(gate_client, header):
    response = gate_client.get("/me", headers={"Authorization": header})
    assert response.status_code == 401


def test_expired_token_is_401(gate_client):
    expired = TokenIssuer(SECRET, timedelta(seconds=-1), "authcore").issue(1, UserRole.ADMIN)
    response = gate_client.get("/me", headers=_auth(expired))
    assert response.status_code == 401
    assert response.json()["detail"] == "Token has expired"


def test_bad_signature_is_401(gate_client):
    forged = TokenIssuer("other-secret", timedelta(minutes=5), "authcore").issue(1, UserRole.ADMIN)
    response = gate_client.get("/admin", headers=_auth(forged))
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token"


def test_valid_token_attaches_principal(gate_client, issuer):
    response = gate_client.get("/me", headers=_auth(issuer.issue(12, UserRole.MODERATOR)))
    assert response.status_code == 200
    assert response.json() == {"user_id": 12, "role": "moderator"}


def test_scheme_is_case_insensitive(gate_client, issuer):
    token = issuer.issue(3, UserRole.USER)
    response = gate_client.get("/me", headers={"Authorization": f"bearer {token}"})
    assert response.status_code == 200


def test_non_admin_on_admin_route_is_403(gate_client, issuer):
    response = gate_client.get("/admin", headers=_auth(issuer.issue(5, UserRole.USER)))
    assert response.status_code == 403
    assert response.json()["error_code"] == "forbidden"


def test_admin_on_admin_route(gate_client, issuer):
    response = gate_client.get("/admin", headers=_auth(issuer.issue(1, UserRole.ADMIN)))
    assert response.status_code == 200


def test_authentication_runs_before_role_check(gate_client):
    # No identity at all must be 401, never 403.
    assert gate_client.get("/admin").status_code == 401


@pytest.mark.parametrize(
    "role, status",
    [(UserRole.ADMIN, 200), (UserRole.MODERATOR, 200), (UserRole.USER, 403)],
)
def test_multi_role_gate(gate_client, issuer, role, status):
    response = gate_client.get("/staff", headers=_auth(issuer.issue(9, role)))
    assert response.status_code == status


def test_role_checker_accepts_plain_values():
    checker = RoleChecker(["admin", "moderator"])
    assert checker.is_allowed(UserRole.ADMIN)
    assert checker.is_allowed(UserRole.MODERATOR)
    assert not checker.is_allowed(UserRole.USER)


def test_bare_token_without_scheme_is_401(gate_client, issuer):
    token = issuer.issue(3, UserRole.USER)
    response = gate_client.get("/me", headers={"Authorization": token})
    assert response.status_code == 401
    assert response.json()["detail"] == "Not authenticated"
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_bearer_scheme_is_documented(gate_client):
    schema = gate_client.get("/openapi.json").json()
    assert schema["components"]["securitySchemes"]["HTTPBearer"] == {"type": "http", "scheme": "bearer"}
    assert schema["paths"]["/me"]["get"]["security"] == [{"HTTPBearer": []}]
