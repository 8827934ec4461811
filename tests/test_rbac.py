import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from adatickets.dependencies.auth import AuthenticatedUser, bearer_token, resolve_user_from_token, role_required
from adatickets.lifecycle import Role
from adatickets.main import create_app


@pytest.mark.asyncio
async def test_role_required_allows_authorized_user():
    dependency = role_required(Role.ADMIN)
    user = AuthenticatedUser("alice", (Role.ADMIN,))
    result = await dependency(user)  # type: ignore[arg-type]
    assert result.user_id == "alice"


@pytest.mark.asyncio
async def test_role_required_rejects_unauthorized_user():
    dependency = role_required(Role.OPERATOR)
    user = AuthenticatedUser("bob", (Role.USER,))
    with pytest.raises(HTTPException) as exc:
        await dependency(user)  # type: ignore[arg-type]

    assert exc.value.status_code == 403
    assert exc.value.detail == "Insufficient permissions"


def test_resolve_user_from_token():
    assert resolve_user_from_token(None).roles == ()
    assert resolve_user_from_token("operator-token").user_id == "operator"
    assert resolve_user_from_token("admin-token").has_role(Role.OPERATOR)
    with pytest.raises(HTTPException) as exc:
        resolve_user_from_token("forged")
    assert exc.value.status_code == 401


def test_middleware_resolves_bearer_token():
    client = TestClient(create_app())

    response = client.get("/ping/whoami", headers={"Authorization": "Bearer user-token"})

    assert response.status_code == 200
    assert response.json() == {"user_id": "user", "roles": ["user"]}


def test_middleware_rejects_other_schemes():
    client = TestClient(create_app())

    response = client.get("/ping/whoami", headers={"Authorization": "Basic dXNlcjpwYXNz"})

    assert response.status_code == 401


def test_bearer_token_parsing():
    assert bearer_token(None) is None
    assert bearer_token("Bearer  user-token ") == "user-token"
    assert bearer_token("bearer ") is None
    with pytest.raises(HTTPException):
        bearer_token("Token user-token")
