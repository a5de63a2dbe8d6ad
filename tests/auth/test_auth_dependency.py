"""Bearer token authentication for protected routes.

Every rejection carries the same 401 body so that callers cannot tell a
missing, forged, expired or stale token apart.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import jwt
import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from tests.factories import UserFactory
from users_api.config import settings
from users_api.security import create_access_token

UNAUTHORIZED_BODY = {"error": "Unauthorized", "message": "Invalid or expired token"}


@pytest.mark.asyncio
async def test_auth_missing_header(public_client: AsyncClient):
    response = await public_client.get("/api/users")

    assert response.status_code == 401
    assert response.json() == UNAUTHORIZED_BODY
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_auth_wrong_scheme(public_client: AsyncClient, test_user):
    token = create_access_token(data={"id": test_user.id, "email": test_user.email})
    response = await public_client.get("/api/users", headers={"Authorization": f"Basic {token}"})

    assert response.status_code == 401
    assert response.json() == UNAUTHORIZED_BODY


@pytest.mark.asyncio
async def test_auth_invalid_token(public_client: AsyncClient):
    response = await public_client.get("/api/users", headers={"Authorization": "Bearer invalid-token"})

    assert response.status_code == 401
    assert response.json() == UNAUTHORIZED_BODY


@pytest.mark.asyncio
async def test_auth_expired_token_matches_invalid_token(public_client: AsyncClient, test_user):
    expired = create_access_token(
        data={"id": test_user.id, "email": test_user.email},
        expires_delta=timedelta(seconds=-1),
    )
    response = await public_client.get("/api/users", headers={"Authorization": f"Bearer {expired}"})

    assert response.status_code == 401
    assert response.json() == UNAUTHORIZED_BODY


@pytest.mark.asyncio
async def test_auth_token_signed_with_other_secret(public_client: AsyncClient, test_user):
    forged = jwt.encode(
        {"id": test_user.id, "email": test_user.email, "iat": 0, "exp": 4_102_444_800},
        "some-other-secret-that-is-long-enough",
        algorithm=settings.jwt_algorithm,
    )
    response = await public_client.get("/api/users", headers={"Authorization": f"Bearer {forged}"})

    assert response.status_code == 401
    assert response.json() == UNAUTHORIZED_BODY


@pytest.mark.asyncio
async def test_auth_non_existent_user(public_client: AsyncClient):
    token = create_access_token(data={"id": 999_999, "email": "ghost@example.com"})
    response = await public_client.get("/api/users", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json() == UNAUTHORIZED_BODY


@pytest.mark.asyncio
async def test_token_of_deleted_user_is_rejected(db, public_client: AsyncClient, auth_headers):
    user = await UserFactory.create_async(db, email="leaving@example.com")
    headers = auth_headers(user)

    deleted = await public_client.delete(f"/api/users/{user.id}", headers=headers)
    assert deleted.status_code == 200

    response = await public_client.get("/api/users", headers=headers)
    assert response.status_code == 401
    assert response.json() == UNAUTHORIZED_BODY


@pytest.mark.asyncio
async def test_auth_storage_failure_is_server_error(public_client: AsyncClient, test_user, auth_headers):
    failure = OperationalError("SELECT users", {}, Exception("database is down"))
    with patch(
        "users_api.auth.user_service.get_user_by_id",
        new=AsyncMock(side_effect=failure),
    ):
        response = await public_client.get("/api/users", headers=auth_headers(test_user))

    assert response.status_code == 500
    assert response.json()["error"] == "Authentication error"
    assert "details" not in response.json()
