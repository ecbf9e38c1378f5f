import uuid

import pytest

from conftest import create_canvas, register


@pytest.mark.anyio
async def test_create_and_load_canvas(client):
    u1 = await register(client, "u1")
    created = await create_canvas(client, u1, name="A", description="first")
    assert created["version"] == 1
    assert created["owner_id"] == "u1"
    assert created["is_public"] is False

    resp = await client.get(f"/v1/canvases/{created['canvas_id']}", headers=u1)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["document"] == {}
    assert data["metadata"]["name"] == "A"
    assert data["metadata"]["description"] == "first"
    assert data["assets"] == []


@pytest.mark.anyio
async def test_create_requires_name(client):
    u1 = await register(client, "u1")
    resp = await client.post("/v1/canvases", json={"name": ""}, headers=u1)
    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio
async def test_save_increments_version_each_time(client):
    u1 = await register(client, "u1")
    canvas = await create_canvas(client, u1)

    saves = 5
    for i in range(saves):
        resp = await client.put(
            f"/v1/canvases/{canvas['canvas_id']}",
            json={"document": {"shape:1": {"id": "shape:1", "x": i}}},
            headers=u1,
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"]["version"] == 2 + i

    loaded = (await client.get(f"/v1/canvases/{canvas['canvas_id']}", headers=u1)).json()["data"]
    assert loaded["metadata"]["version"] == 1 + saves
    assert loaded["document"]["shape:1"]["x"] == saves - 1


@pytest.mark.anyio
async def test_save_updates_metadata_and_session(client):
    u1 = await register(client, "u1")
    canvas = await create_canvas(client, u1)
    resp = await client.put(
        f"/v1/canvases/{canvas['canvas_id']}",
        json={
            "document": {},
            "session": {"camera": {"x": 1}},
            "name": "Renamed",
            "description": "",
            "thumbnail_url": "https://cdn.example.test/t.png",
        },
        headers=u1,
    )
    data = resp.json()["data"]
    assert data["name"] == "Renamed"
    assert data["description"] == ""
    assert data["thumbnail_url"] == "https://cdn.example.test/t.png"

    loaded = (await client.get(f"/v1/canvases/{canvas['canvas_id']}", headers=u1)).json()["data"]
    assert loaded["session"] == {"camera": {"x": 1}}


@pytest.mark.anyio
async def test_save_requires_document(client):
    u1 = await register(client, "u1")
    canvas = await create_canvas(client, u1)
    resp = await client.put(f"/v1/canvases/{canvas['canvas_id']}", json={"name": "x"}, headers=u1)
    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio
async def test_stranger_gets_not_found_not_permission_denied(client):
    u1 = await register(client, "u1")
    u3 = await register(client, "u3")
    canvas = await create_canvas(client, u1)

    for method, kwargs in [
        ("GET", {}),
        ("PUT", {"json": {"document": {}}}),
        ("DELETE", {}),
    ]:
        resp = await client.request(method, f"/v1/canvases/{canvas['canvas_id']}", headers=u3, **kwargs)
        assert resp.status_code == 404, method
        assert resp.json()["code"] == "NOT_FOUND"


@pytest.mark.anyio
async def test_missing_canvas_is_not_found(client):
    u1 = await register(client, "u1")
    resp = await client.get(f"/v1/canvases/{uuid.uuid4()}", headers=u1)
    assert resp.status_code == 404


@pytest.mark.anyio
async def test_public_canvas_is_view_only_for_others(client):
    u1 = await register(client, "u1")
    u3 = await register(client, "u3")
    canvas = await create_canvas(client, u1, is_public=True)

    resp = await client.get(f"/v1/canvases/{canvas['canvas_id']}", headers=u3)
    assert resp.status_code == 200

    resp = await client.put(f"/v1/canvases/{canvas['canvas_id']}", json={"document": {}}, headers=u3)
    assert resp.status_code == 403
    assert resp.json()["code"] == "PERMISSION_DENIED"

    resp = await client.delete(f"/v1/canvases/{canvas['canvas_id']}", headers=u3)
    assert resp.status_code == 403


@pytest.mark.anyio
async def test_visibility_toggle_requires_admin(client):
    u1 = await register(client, "u1")
    u3 = await register(client, "u3")
    canvas = await create_canvas(client, u1)

    resp = await client.patch(f"/v1/canvases/{canvas['canvas_id']}/visibility", json={"is_public": True}, headers=u3)
    assert resp.status_code == 404

    resp = await client.patch(f"/v1/canvases/{canvas['canvas_id']}/visibility", json={"is_public": True}, headers=u1)
    assert resp.status_code == 200
    assert resp.json()["data"]["is_public"] is True
    assert resp.json()["data"]["version"] == 1

    resp = await client.get(f"/v1/canvases/{canvas['canvas_id']}", headers=u3)
    assert resp.status_code == 200


@pytest.mark.anyio
async def test_list_includes_owned_public_and_shared(client):
    u1 = await register(client, "u1")
    u2 = await register(client, "u2")
    u3 = await register(client, "u3")

    own = await create_canvas(client, u2, name="own")
    public = await create_canvas(client, u1, name="public", is_public=True)
    shared = await create_canvas(client, u1, name="shared")
    await create_canvas(client, u3, name="hidden")
    await client.post(
        f"/v1/canvases/{shared['canvas_id']}/shares",
        json={"target_user_id": "u2", "permission_level": "EDIT"},
        headers=u1,
    )

    resp = await client.get("/v1/canvases", headers=u2)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["total_count"] == 3
    by_name = {item["name"]: item for item in data["canvases"]}
    assert set(by_name) == {"own", "public", "shared"}
    assert by_name["own"]["is_owner"] is True
    assert by_name["own"]["permission"] == "ADMIN"
    assert by_name["public"]["permission"] == "VIEW"
    assert by_name["shared"]["permission"] == "EDIT"
    assert own["canvas_id"] in {item["canvas_id"] for item in data["canvases"]}
    assert public["canvas_id"] in {item["canvas_id"] for item in data["canvases"]}

    resp = await client.get("/v1/canvases", params={"include_shared": "false"}, headers=u2)
    data = resp.json()["data"]
    assert [item["name"] for item in data["canvases"]] == ["own"]


@pytest.mark.anyio
async def test_list_orders_by_most_recent_update_and_paginates(client):
    u1 = await register(client, "u1")
    first = await create_canvas(client, u1, name="first")
    await create_canvas(client, u1, name="second")
    await create_canvas(client, u1, name="third")

    await client.put(f"/v1/canvases/{first['canvas_id']}", json={"document": {}}, headers=u1)

    page1 = (await client.get("/v1/canvases", params={"page": 1, "limit": 2}, headers=u1)).json()["data"]
    page2 = (await client.get("/v1/canvases", params={"page": 2, "limit": 2}, headers=u1)).json()["data"]
    assert page1["total_count"] == 3
    assert [c["name"] for c in page1["canvases"]] == ["first", "third"]
    assert [c["name"] for c in page2["canvases"]] == ["second"]


@pytest.mark.anyio
@pytest.mark.parametrize("params", [{"page": 0}, {"limit": 0}, {"limit": 101}])
async def test_list_rejects_bad_pagination(client, params):
    u1 = await register(client, "u1")
    resp = await client.get("/v1/canvases", params=params, headers=u1)
    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio
async def test_collaborative_edit_example(client):
    u1 = await register(client, "u1")
    u2 = await register(client, "u2")
    canvas = await create_canvas(client, u1, name="A")
    assert canvas["version"] == 1

    resp = await client.post(
        f"/v1/canvases/{canvas['canvas_id']}/shares",
        json={"target_user_id": "u2", "permission_level": "EDIT"},
        headers=u1,
    )
    assert resp.status_code == 201

    document = {"shape:u2": {"id": "shape:u2", "type": "geo", "props": {}}}
    resp = await client.put(f"/v1/canvases/{canvas['canvas_id']}", json={"document": document}, headers=u2)
    assert resp.status_code == 200
    assert resp.json()["data"]["version"] == 2

    loaded = (await client.get(f"/v1/canvases/{canvas['canvas_id']}", headers=u1)).json()["data"]
    assert loaded["document"] == document
    assert loaded["metadata"]["version"] == 2


@pytest.mark.anyio
async def test_delete_cascades_assets_and_shares(client):
    from sqlalchemy import func, select

    from app.db.models import CanvasAsset, CanvasShare
    from app.db.session import get_sessionmaker
    from app.main import app

    u1 = await register(client, "u1")
    await register(client, "u2")
    canvas = await create_canvas(client, u1)
    canvas_id = canvas["canvas_id"]

    await client.post(
        f"/v1/canvases/{canvas_id}/shares",
        json={"target_user_id": "u2", "permission_level": "VIEW"},
        headers=u1,
    )
    ticket = (
        await client.post(
            f"/v1/canvases/{canvas_id}/assets/upload",
            json={"file_name": "a.png", "file_type": "image/png", "file_size": 100},
            headers=u1,
        )
    ).json()["data"]
    await client.post(
        f"/v1/canvases/{canvas_id}/assets",
        json={
            "external_asset_id": "asset:1",
            "storage_key": ticket["key"],
            "public_url": ticket["public_url"],
            "file_name": "a.png",
            "file_type": "image/png",
            "file_size": 100,
        },
        headers=u1,
    )

    resp = await client.delete(f"/v1/canvases/{canvas_id}", headers=u1)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Canvas deleted successfully"

    cid = uuid.UUID(canvas_id)
    with get_sessionmaker()() as db:
        assert db.execute(select(func.count()).select_from(CanvasAsset).where(CanvasAsset.canvas_id == cid)).scalar_one() == 0
        assert db.execute(select(func.count()).select_from(CanvasShare).where(CanvasShare.canvas_id == cid)).scalar_one() == 0

    assert ticket["key"] in app.state.storage.deleted_keys
    resp = await client.get(f"/v1/canvases/{canvas_id}", headers=u1)
    assert resp.status_code == 404


@pytest.mark.anyio
async def test_lifecycle_is_audited(client):
    from app.db.session import get_sessionmaker
    from app.services.audit import audit_trail

    u1 = await register(client, "u1")
    canvas = await create_canvas(client, u1)
    canvas_id = canvas["canvas_id"]
    await client.patch(f"/v1/canvases/{canvas_id}/visibility", json={"is_public": True}, headers=u1)
    await client.patch(f"/v1/canvases/{canvas_id}/visibility", json={"is_public": True}, headers=u1)
    await client.delete(f"/v1/canvases/{canvas_id}", headers=u1)

    with get_sessionmaker()() as db:
        entries = audit_trail(db, uuid.UUID(canvas_id))
        assert [e.action for e in entries] == ["created", "visibility_changed", "deleted"]
        assert all(e.actor_user_id == "u1" for e in entries)
        assert entries[1].new_value == {"is_public": True}


@pytest.mark.anyio
async def test_empty_session_round_trips(client):
    u1 = await register(client, "u1")
    canvas = await create_canvas(client, u1)
    canvas_id = canvas["canvas_id"]

    loaded = (await client.get(f"/v1/canvases/{canvas_id}", headers=u1)).json()["data"]
    assert loaded["session"] == {}

    await client.put(f"/v1/canvases/{canvas_id}", json={"document": {}, "session": {}}, headers=u1)
    loaded = (await client.get(f"/v1/canvases/{canvas_id}", headers=u1)).json()["data"]
    assert loaded["session"] == {}
