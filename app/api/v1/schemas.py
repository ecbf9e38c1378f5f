import uuid
from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from app.core.permissions import PermissionLevel


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope shared by every endpoint."""

    success: bool = True
    data: T | None = None
    message: str | None = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    code: str
    request_id: str | None = None


class UserRead(BaseModel):
    id: str
    email: str
    name: str | None = None

    model_config = {"from_attributes": True}


class CanvasCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=10_000)
    is_public: bool = False


class CanvasSave(BaseModel):
    """Payload for saving a canvas.

    `document` and `session` are opaque scene-graph snapshots; the server
    stores them verbatim and only inspects `document` for asset references.
    """

    document: dict[str, Any]
    session: dict[str, Any] | None = None
    name: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=10_000)
    thumbnail_url: str | None = None


class CanvasVisibilityUpdate(BaseModel):
    is_public: bool


class CanvasRead(BaseModel):
    canvas_id: uuid.UUID
    owner_id: str
    name: str
    description: str | None = None
    thumbnail_url: str | None = None
    is_public: bool
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class CanvasListItemRead(BaseModel):
    canvas_id: uuid.UUID
    name: str
    description: str | None = None
    thumbnail_url: str | None = None
    is_public: bool
    updated_at: datetime | None = None
    version: int
    is_owner: bool
    permission: PermissionLevel


class CanvasListRead(BaseModel):
    canvases: list[CanvasListItemRead]
    total_count: int
    page: int
    limit: int


class AssetRead(BaseModel):
    asset_id: uuid.UUID
    canvas_id: uuid.UUID
    external_asset_id: str
    storage_key: str
    public_url: str
    file_name: str
    file_type: str
    file_size: int
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class CanvasDocumentRead(BaseModel):
    document: dict[str, Any]
    session: dict[str, Any] | None = None
    metadata: CanvasRead
    assets: list[AssetRead]


class ShareCreate(BaseModel):
    target_user_id: str = Field(min_length=1, max_length=255)
    permission_level: PermissionLevel


class ShareRead(BaseModel):
    share_id: uuid.UUID
    canvas_id: uuid.UUID
    grantee_user_id: str | None = None
    permission_level: PermissionLevel
    granted_by_user_id: str
    created_at: datetime | None = None
    grantee: UserRead | None = None

    model_config = {"from_attributes": True}


class UploadRequest(BaseModel):
    file_name: str = Field(min_length=1, max_length=255)
    file_type: str = Field(min_length=1, max_length=128)
    file_size: int = Field(gt=0)


class UploadTicketRead(BaseModel):
    upload_url: str
    public_url: str
    key: str


class AssetCreate(BaseModel):
    external_asset_id: str = Field(min_length=1, max_length=255)
    storage_key: str = Field(min_length=1)
    public_url: str = Field(min_length=1)
    file_name: str = Field(min_length=1, max_length=255)
    file_type: str = Field(min_length=1, max_length=128)
    file_size: int = Field(gt=0)


class DownloadUrlRead(BaseModel):
    download_url: str


class CleanupResult(BaseModel):
    deleted_count: int
