"""Unit tests for access token verification and the current-user dependency."""

import time
from uuid import uuid4

import jwt
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from saydo.api.dependencies import get_current_user
from saydo.config import get_settings
from saydo.models.user import AuthenticatedUser
from saydo.services.auth_service import JWT_ALGORITHM, AuthService


def make_token(secret=None, **claims) -> str:
    payload = {
        "sub": str(uuid4()),
        "aud": "authenticated",
        "exp": int(time.time()) + 3600,
        "email": "sam@example.com",
    }
    payload.update(claims)
    payload = {k: v for k, v in payload.items() if v is not None}
    return jwt.encode(payload, secret or get_settings().jwt_secret, algorithm=JWT_ALGORITHM)


@pytest.fixture
def client():
    app = FastAPI()

    @app.get("/me")
    async def me(user: AuthenticatedUser = Depends(get_current_user)):
        return {"id": str(user.id), "email": user.email, "role": user.role}

    return TestClient(app)


class TestValidateAccessToken:
    def test_valid_token(self):
        token = make_token(sub="4b7c1f2e-0f6a-4a8e-9a57-3f1b2c3d4e5f")

        payload = AuthService().validate_access_token(token)

        assert payload["sub"] == "4b7c1f2e-0f6a-4a8e-9a57-3f1b2c3d4e5f"

    def test_expired_token(self):
        token = make_token(exp=int(time.time()) - 60)

        with pytest.raises(ValueError, match="expired"):
            AuthService().validate_access_token(token)

    def test_wrong_signature(self):
        token = make_token(secret="another-secret-key-with-at-least-32-bytes")

        with pytest.raises(ValueError, match="Invalid token"):
            AuthService().validate_access_token(token)

    def test_wrong_audience(self):
        with pytest.raises(ValueError, match="Invalid token"):
            AuthService().validate_access_token(make_token(aud="service_role"))

    def test_missing_subject(self):
        with pytest.raises(ValueError, match="Invalid token"):
            AuthService().validate_access_token(make_token(sub=None))


class TestGetCurrentUser:
    def test_resolves_user_from_token(self, client):
        user_id = str(uuid4())

        response = client.get("/me", headers={"Authorization": f"Bearer {make_token(sub=user_id)}"})

        assert response.status_code == 200
        assert response.json() == {
            "id": user_id,
            "email": "sam@example.com",
            "role": "authenticated",
        }

    def test_invalid_token_is_unauthorized(self, client):
        response = client.get("/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_non_uuid_subject_is_unauthorized(self, client):
        response = client.get(
            "/me", headers={"Authorization": f"Bearer {make_token(sub='service-account')}"}
        )

        assert response.status_code == 401
