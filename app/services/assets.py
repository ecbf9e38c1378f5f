import logging
import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import (
    FileTooLargeError,
    InvalidFileTypeError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.core.metrics import (
    record_orphans_deleted,
    record_storage_delete_failure,
    record_upload_requested,
)
from app.core.permissions import PermissionLevel
from app.core.request_context import log_context, scoped_to_caller
from app.db.models import CanvasAsset, utcnow
from app.services.audit import record_audit
from app.services.permissions import PermissionEvaluator
from app.services.storage import StorageClient


logger = logging.getLogger(__name__)

ALLOWED_FILE_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/svg+xml",
        "image/webp",
        "video/mp4",
        "video/webm",
        "video/quicktime",
    }
)

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


@dataclass
class UploadTicket:
    upload_url: str
    public_url: str
    key: str


def sanitize_file_name(file_name: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", file_name)


def asset_key_prefix(canvas_id: uuid.UUID) -> str:
    return f"canvases/{canvas_id}/assets/"


def generate_asset_key(canvas_id: uuid.UUID, file_name: str) -> str:
    timestamp_ms = int(time.time() * 1000)
    suffix = uuid.uuid4().hex[:12]
    return f"{asset_key_prefix(canvas_id)}{timestamp_ms}_{suffix}_{sanitize_file_name(file_name)}"


def validate_upload(file_type: str, file_size: int, max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> None:
    if file_type.lower() not in ALLOWED_FILE_TYPES:
        raise InvalidFileTypeError(
            f"unsupported file type: {file_type}",
            detail="Unsupported file type. Supported: JPEG, PNG, GIF, SVG, WebP, MP4, WebM, MOV",
        )
    if file_size <= 0:
        raise ValidationError("file size must be positive")
    if file_size > max_bytes:
        raise FileTooLargeError(
            f"file size {file_size} exceeds {max_bytes}",
            detail=f"File size exceeds {max_bytes // (1024 * 1024)}MB limit",
        )


def collect_referenced_asset_ids(document: Any) -> set[str]:
    """Asset ids referenced by records in a scene-graph document.

    The document maps record ids to records; asset-bearing shapes carry the
    reference under `props.assetId`.
    """
    referenced: set[str] = set()
    if not isinstance(document, dict):
        return referenced
    for record in document.values():
        if not isinstance(record, dict):
            continue
        props = record.get("props")
        if isinstance(props, dict):
            asset_id = props.get("assetId")
            if isinstance(asset_id, str) and asset_id:
                referenced.add(asset_id)
    return referenced


class AssetService:
    def __init__(
        self,
        db: Session,
        storage: StorageClient,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        url_ttl_seconds: int = 3600,
    ):
        self.db = db
        self.storage = storage
        self.max_upload_bytes = max_upload_bytes
        self.url_ttl_seconds = url_ttl_seconds
        self.permissions = PermissionEvaluator(db)

    @scoped_to_caller
    def request_upload(
        self,
        user_id: str,
        canvas_id: uuid.UUID,
        file_name: str,
        file_type: str,
        file_size: int,
    ) -> UploadTicket:
        validate_upload(file_type, file_size, self.max_upload_bytes)
        self.permissions.require(user_id, canvas_id, PermissionLevel.EDIT)

        key = generate_asset_key(canvas_id, file_name)
        public_url = self.storage.public_url(key)
        upload_url = self.storage.presign_put(
            key,
            content_type=file_type,
            content_length=file_size,
            metadata={
                "canvas-id": str(canvas_id),
                "user-id": user_id,
                "original-name": sanitize_file_name(file_name),
            },
            expires_in=self.url_ttl_seconds,
        )
        record_upload_requested(file_type.lower())
        logger.info(
            "asset_upload_requested",
            extra={"canvas_id": str(canvas_id), "storage_key": key, "file_size": file_size},
        )
        return UploadTicket(upload_url=upload_url, public_url=public_url, key=key)

    @scoped_to_caller
    def create_asset_record(
        self,
        user_id: str,
        canvas_id: uuid.UUID,
        external_asset_id: str,
        storage_key: str,
        public_url: str,
        file_name: str,
        file_type: str,
        file_size: int,
    ) -> CanvasAsset:
        validate_upload(file_type, file_size, self.max_upload_bytes)
        self.permissions.require(user_id, canvas_id, PermissionLevel.EDIT)
        if not storage_key.startswith(asset_key_prefix(canvas_id)):
            raise ValidationError("storage key does not belong to this canvas")

        asset = CanvasAsset(
            canvas_id=canvas_id,
            external_asset_id=external_asset_id,
            storage_key=storage_key,
            public_url=public_url,
            file_name=file_name,
            file_type=file_type,
            file_size=file_size,
        )
        self.db.add(asset)
        self.db.flush()
        record_audit(
            self.db,
            "canvas_asset",
            asset.asset_id,
            "created",
            actor_user_id=user_id,
            new_value={"canvas_id": str(canvas_id), "storage_key": storage_key, "file_size": file_size},
        )
        self.db.commit()
        self.db.refresh(asset)
        return asset

    def _asset_with_access(self, user_id: str, asset_id: uuid.UUID, required: PermissionLevel) -> CanvasAsset:
        asset = self.db.get(CanvasAsset, asset_id)
        if asset is None:
            raise NotFoundError("asset", asset_id)
        try:
            self.permissions.require(user_id, asset.canvas_id, required)
        except NotFoundError:
            raise NotFoundError("asset", asset_id) from None
        return asset

    @scoped_to_caller
    def delete_asset(self, user_id: str, asset_id: uuid.UUID) -> None:
        asset = self._asset_with_access(user_id, asset_id, PermissionLevel.EDIT)
        with log_context(canvas_id=asset.canvas_id):
            try:
                self.storage.delete_object(asset.storage_key)
            except StorageError:
                # Row delete proceeds even when the remote delete fails.
                record_storage_delete_failure("delete_asset")
                logger.warning(
                    "asset_remote_delete_failed",
                    extra={"asset_id": str(asset_id), "storage_key": asset.storage_key},
                    exc_info=True,
                )

            snapshot = {
                "canvas_id": str(asset.canvas_id),
                "external_asset_id": asset.external_asset_id,
                "storage_key": asset.storage_key,
            }
            self.db.delete(asset)
            record_audit(
                self.db,
                "canvas_asset",
                asset_id,
                "deleted",
                actor_user_id=user_id,
                old_value=snapshot,
            )
            self.db.commit()

    @scoped_to_caller
    def list_assets(self, user_id: str, canvas_id: uuid.UUID) -> list[CanvasAsset]:
        self.permissions.require(user_id, canvas_id, PermissionLevel.VIEW)
        return list(
            self.db.execute(
                select(CanvasAsset)
                .where(CanvasAsset.canvas_id == canvas_id)
                .order_by(CanvasAsset.created_at.desc())
            )
            .scalars()
            .all()
        )

    @scoped_to_caller
    def get_asset_by_external_id(self, user_id: str, canvas_id: uuid.UUID, external_asset_id: str) -> CanvasAsset:
        self.permissions.require(user_id, canvas_id, PermissionLevel.VIEW)
        asset = self.db.execute(
            select(CanvasAsset)
            .where(
                CanvasAsset.canvas_id == canvas_id,
                CanvasAsset.external_asset_id == external_asset_id,
            )
            .limit(1)
        ).scalar_one_or_none()
        if asset is None:
            raise NotFoundError("asset", external_asset_id)
        return asset

    @scoped_to_caller
    def get_download_url(self, user_id: str, asset_id: uuid.UUID) -> str:
        asset = self._asset_with_access(user_id, asset_id, PermissionLevel.VIEW)
        return self.storage.presign_get(asset.storage_key, expires_in=self.url_ttl_seconds)

    @scoped_to_caller
    def cleanup_orphaned_assets(
        self,
        user_id: str,
        canvas_id: uuid.UUID,
        min_age_seconds: int = 0,
    ) -> int:
        """Delete assets that the canvas document no longer references.

        Runs without locking: an asset re-referenced by a save that lands
        mid-sweep can still be removed. `min_age_seconds` spares assets
        uploaded recently enough that their referencing save may be in flight.
        """
        canvas = self.permissions.require(user_id, canvas_id, PermissionLevel.EDIT)
        with log_context(canvas_id=canvas_id):
            referenced = collect_referenced_asset_ids(canvas.document_data)
            cutoff = utcnow() - timedelta(seconds=min_age_seconds) if min_age_seconds > 0 else None

            assets = list(canvas.assets)
            orphans = []
            for asset in assets:
                if asset.external_asset_id in referenced:
                    continue
                if cutoff is not None and _as_aware(asset.created_at) > cutoff:
                    continue
                orphans.append(asset)

            deleted_ids: list[str] = []
            for asset in orphans:
                try:
                    self.storage.delete_object(asset.storage_key)
                except StorageError:
                    record_storage_delete_failure("cleanup_orphans")
                    logger.warning(
                        "orphan_asset_delete_failed",
                        extra={"asset_id": str(asset.asset_id), "storage_key": asset.storage_key},
                        exc_info=True,
                    )
                    continue
                deleted_ids.append(str(asset.asset_id))
                self.db.delete(asset)
            if deleted_ids:
                record_audit(
                    self.db,
                    "canvas",
                    canvas_id,
                    "orphan_assets_deleted",
                    actor_user_id=user_id,
                    old_value={"asset_ids": deleted_ids},
                )
            self.db.commit()

            record_orphans_deleted(len(deleted_ids))
            logger.info(
                "orphan_cleanup_complete",
                extra={"scanned": len(assets), "deleted": len(deleted_ids)},
            )
            return len(deleted_ids)


def _as_aware(value: datetime) -> datetime:
    # SQLite drops tzinfo on round-trip.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
