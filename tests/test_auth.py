import jwt
import pytest

from conftest import TEST_JWT_SECRET, auth_headers, make_token
from app.api.deps import decode_access_token
from app.core.exceptions import AuthenticationError


@pytest.mark.anyio
async def test_missing_token_is_unauthorized(client):
    resp = await client.get("/v1/users/me")
    assert resp.status_code == 401
    body = resp.json()
    assert body["success"] is False
    assert body["code"] == "UNAUTHORIZED"


@pytest.mark.anyio
async def test_bad_signature_is_unauthorized(client):
    token = jwt.encode({"sub": "u1", "email": "u1@example.test"}, "wrong-secret-wrong-secret-wrong-secret", algorithm="HS256")
    resp = await client.get("/v1/users/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


@pytest.mark.anyio
async def test_expired_token_is_unauthorized(client):
    resp = await client.get("/v1/users/me", headers=auth_headers("u1", expires_in=-60))
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid or expired token"


@pytest.mark.anyio
async def test_first_request_provisions_user(client):
    resp = await client.get("/v1/users/me", headers=auth_headers("u1", email="one@example.test", name="One"))
    assert resp.status_code == 200
    assert resp.json()["data"] == {"id": "u1", "email": "one@example.test", "name": "One"}

    resp = await client.get("/v1/users/me", headers=auth_headers("u1", email="one@example.test", name="Renamed"))
    assert resp.json()["data"]["name"] == "Renamed"


@pytest.mark.anyio
async def test_email_claimed_by_other_subject_is_rejected(client):
    await client.get("/v1/users/me", headers=auth_headers("u1", email="shared@example.test"))
    resp = await client.get("/v1/users/me", headers=auth_headers("u2", email="shared@example.test"))
    assert resp.status_code == 401


def test_decode_requires_subject():
    token = jwt.encode({"email": "x@example.test"}, TEST_JWT_SECRET, algorithm="HS256")
    with pytest.raises(AuthenticationError):
        decode_access_token(token)


def test_decode_returns_claims():
    claims = decode_access_token(make_token("u9", email="nine@example.test"))
    assert claims["sub"] == "u9"
    assert claims["email"] == "nine@example.test"
