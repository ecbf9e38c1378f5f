import pytest

from app.core import settings as settings_module
from app.core.exceptions import ConfigurationError
from app.main import app


@pytest.mark.anyio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.headers["x-request-id"]


@pytest.mark.anyio
async def test_request_id_is_propagated(client):
    resp = await client.get("/health", headers={"x-request-id": "req-123"})
    assert resp.headers["x-request-id"] == "req-123"


@pytest.mark.anyio
async def test_metrics_endpoint(client):
    resp = await client.get("/metrics")
    assert resp.status_code == 200
    assert "canvas_saves_total" in resp.text


@pytest.mark.anyio
async def test_unknown_route_uses_error_envelope(client):
    resp = await client.get("/v1/nope", headers={"x-request-id": "req-404"})
    assert resp.status_code == 404
    body = resp.json()
    assert body["success"] is False
    assert body["code"] == "NOT_FOUND"
    assert body["request_id"] == "req-404"


@pytest.mark.anyio
async def test_wrong_method_uses_error_envelope(client):
    resp = await client.delete("/health")
    assert resp.status_code == 405
    assert resp.json()["code"] == "METHOD_NOT_ALLOWED"
    assert "allow" in resp.headers


@pytest.mark.anyio
@pytest.mark.parametrize("secret", [None, "", "change-me"])
async def test_startup_rejects_missing_or_placeholder_secret(monkeypatch, secret):
    monkeypatch.setattr(settings_module.settings, "auth_jwt_secret", secret)
    with pytest.raises(ConfigurationError):
        async with app.router.lifespan_context(app):
            pass
