"""
Object storage clients for canvas assets.

Binary payloads never pass through the API; clients upload and download
directly against presigned URLs issued here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.core.exceptions import ConfigurationError, StorageError
from app.core.metrics import track_storage_call
from app.core.settings import Settings
from app.core.telemetry import trace_span


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def presign_put(
        self,
        key: str,
        content_type: str,
        content_length: int,
        metadata: dict[str, str] | None = None,
        expires_in: int = 3600,
    ) -> str:
        ...

    def presign_get(self, key: str, expires_in: int = 3600) -> str:
        ...

    def public_url(self, key: str) -> str:
        ...

    def delete_object(self, key: str) -> None:
        ...

    def close(self) -> None:
        ...


@dataclass
class InMemoryStorageClient:
    """Storage double used for local development and tests."""

    base_url: str = "https://storage.example.test"
    objects: dict[str, bytes] = field(default_factory=dict)
    deleted_keys: list[str] = field(default_factory=list)
    issued_uploads: list[dict] = field(default_factory=list)

    def presign_put(
        self,
        key: str,
        content_type: str,
        content_length: int,
        metadata: dict[str, str] | None = None,
        expires_in: int = 3600,
    ) -> str:
        self.issued_uploads.append(
            {
                "key": key,
                "content_type": content_type,
                "content_length": content_length,
                "metadata": dict(metadata or {}),
            }
        )
        return f"{self.base_url}/{quote(key)}?op=put&expires={expires_in}"

    def presign_get(self, key: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{quote(key)}?op=get&expires={expires_in}"

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    def delete_object(self, key: str) -> None:
        self.objects.pop(key, None)
        self.deleted_keys.append(key)

    def close(self) -> None:
        return None


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client (Cloudflare R2, MinIO, AWS S3).
    """

    bucket: str
    endpoint: str
    region: str
    access_key_id: str
    secret_access_key: str
    public_domain: str | None = None

    def __post_init__(self):
        # R2 and MinIO require path-style addressing.
        config = Config(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def presign_put(
        self,
        key: str,
        content_type: str,
        content_length: int,
        metadata: dict[str, str] | None = None,
        expires_in: int = 3600,
    ) -> str:
        params = {
            "Bucket": self.bucket,
            "Key": key,
            "ContentType": content_type,
            "ContentLength": content_length,
        }
        if metadata:
            params["Metadata"] = metadata
        with trace_span("storage.presign_put", key=key), track_storage_call("presign_put"):
            try:
                return self._client.generate_presigned_url(
                    ClientMethod="put_object",
                    Params=params,
                    ExpiresIn=expires_in,
                )
            except (BotoCoreError, ClientError) as exc:
                raise StorageError("failed to presign upload", detail="storage unavailable") from exc

    def presign_get(self, key: str, expires_in: int = 3600) -> str:
        with trace_span("storage.presign_get", key=key), track_storage_call("presign_get"):
            try:
                return self._client.generate_presigned_url(
                    ClientMethod="get_object",
                    Params={"Bucket": self.bucket, "Key": key},
                    ExpiresIn=expires_in,
                )
            except (BotoCoreError, ClientError) as exc:
                raise StorageError("failed to presign download", detail="storage unavailable") from exc

    def public_url(self, key: str) -> str:
        if not self.public_domain:
            raise ConfigurationError("STORAGE_PUBLIC_DOMAIN not configured")
        return f"https://{self.public_domain}/{key}"

    def delete_object(self, key: str) -> None:
        with trace_span("storage.delete_object", key=key), track_storage_call("delete_object"):
            try:
                self._client.delete_object(Bucket=self.bucket, Key=key)
            except (BotoCoreError, ClientError) as exc:
                raise StorageError(f"failed to delete object {key}", detail="storage unavailable") from exc

    def close(self) -> None:
        self._client.close()


def build_storage_client(settings: Settings) -> StorageClient:
    """Construct the process-wide storage client from settings."""
    if settings.storage_use_in_memory:
        return InMemoryStorageClient()
    if not settings.storage_configured:
        raise ConfigurationError(
            "object storage is not configured; set STORAGE_* variables or STORAGE_USE_IN_MEMORY=true"
        )
    return S3StorageClient(
        bucket=settings.storage_bucket or "",
        endpoint=settings.storage_endpoint or "",
        region=settings.storage_region,
        access_key_id=settings.storage_access_key_id or "",
        secret_access_key=settings.storage_secret_access_key or "",
        public_domain=settings.storage_public_domain,
    )
