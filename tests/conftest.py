import time

import jwt
import pytest
import httpx

from app.core import settings as settings_module
from app.db.base import Base
from app.db.session import get_engine, init_engine
from app.main import app

TEST_JWT_SECRET = "test-secret-with-enough-length-for-hs256"


@pytest.fixture(autouse=True)
def _use_test_db(tmp_path, monkeypatch):
    db_path = tmp_path / "test.db"
    database_url = f"sqlite+pysqlite:///{db_path}"

    monkeypatch.setattr(settings_module.settings, "database_url", database_url)
    monkeypatch.setattr(settings_module.settings, "db_auto_create", True)
    monkeypatch.setattr(settings_module.settings, "storage_use_in_memory", True)
    monkeypatch.setattr(settings_module.settings, "auth_jwt_secret", TEST_JWT_SECRET)
    monkeypatch.setattr(settings_module.settings, "auth_jwt_audience", None)
    monkeypatch.setattr(settings_module.settings, "auth_jwt_issuer", None)

    init_engine(database_url)
    Base.metadata.create_all(bind=get_engine())

    yield


def make_token(user_id: str, email: str | None = None, name: str | None = None, expires_in: int = 3600) -> str:
    claims = {"sub": user_id, "exp": int(time.time()) + expires_in}
    claims["email"] = email if email is not None else f"{user_id}@example.test"
    if name is not None:
        claims["name"] = name
    return jwt.encode(claims, TEST_JWT_SECRET, algorithm="HS256")


def auth_headers(user_id: str, **kwargs) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, **kwargs)}"}


@pytest.fixture()
async def client():
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


async def register(client, user_id: str) -> dict[str, str]:
    """Provision a user by presenting a token once; return its headers."""
    headers = auth_headers(user_id)
    resp = await client.get("/v1/users/me", headers=headers)
    assert resp.status_code == 200, resp.text
    return headers


async def create_canvas(client, headers, name="A", **extra) -> dict:
    resp = await client.post("/v1/canvases", json={"name": name, **extra}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]
