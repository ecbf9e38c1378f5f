from urllib.parse import parse_qs, urlparse

import pytest
from botocore.exceptions import ClientError

from app.core.exceptions import ConfigurationError, StorageError
from app.core.settings import Settings
from app.services.storage import InMemoryStorageClient, S3StorageClient, build_storage_client


def _s3_client(public_domain="cdn.example.test"):
    return S3StorageClient(
        bucket="canvas-assets",
        endpoint="https://account.r2.example.test",
        region="auto",
        access_key_id="AKIDEXAMPLE",
        secret_access_key="secret",
        public_domain=public_domain,
    )


def test_in_memory_client_records_uploads_and_deletes():
    storage = InMemoryStorageClient()
    url = storage.presign_put("canvases/c/assets/1_a.png", "image/png", 10, metadata={"user-id": "u1"})
    assert url.startswith("https://storage.example.test/canvases/c/assets/1_a.png")
    assert storage.issued_uploads[0]["metadata"] == {"user-id": "u1"}

    storage.objects["k"] = b"data"
    storage.delete_object("k")
    storage.delete_object("missing")
    assert storage.objects == {}
    assert storage.deleted_keys == ["k", "missing"]


def test_s3_presign_put_is_path_style_and_signed():
    storage = _s3_client()
    url = storage.presign_put("canvases/c/assets/1_a.png", "image/png", 10, expires_in=600)
    parsed = urlparse(url)
    assert parsed.netloc == "account.r2.example.test"
    assert parsed.path == "/canvas-assets/canvases/c/assets/1_a.png"
    query = parse_qs(parsed.query)
    assert query["X-Amz-Expires"] == ["600"]
    assert "X-Amz-Signature" in query


def test_s3_presign_get():
    storage = _s3_client()
    url = storage.presign_get("canvases/c/assets/1_a.png", expires_in=60)
    assert "/canvas-assets/canvases/c/assets/1_a.png" in url
    assert "X-Amz-Expires=60" in url


def test_s3_public_url():
    assert _s3_client().public_url("a/b.png") == "https://cdn.example.test/a/b.png"
    with pytest.raises(ConfigurationError):
        _s3_client(public_domain=None).public_url("a/b.png")


def test_s3_delete_wraps_client_errors(monkeypatch):
    storage = _s3_client()
    error = ClientError({"Error": {"Code": "500", "Message": "boom"}}, "DeleteObject")

    def _fail(**kwargs):
        raise error

    monkeypatch.setattr(storage._client, "delete_object", _fail)
    with pytest.raises(StorageError) as excinfo:
        storage.delete_object("a/b.png")
    assert excinfo.value.__cause__ is error


def test_build_storage_client():
    assert isinstance(build_storage_client(Settings(storage_use_in_memory=True)), InMemoryStorageClient)

    with pytest.raises(ConfigurationError):
        build_storage_client(Settings(storage_use_in_memory=False, storage_endpoint=None))

    client = build_storage_client(
        Settings(
            storage_use_in_memory=False,
            storage_endpoint="https://account.r2.example.test",
            storage_bucket="canvas-assets",
            storage_access_key_id="AKIDEXAMPLE",
            storage_secret_access_key="secret",
        )
    )
    assert isinstance(client, S3StorageClient)
    client.close()
