import uuid

from fastapi import APIRouter, Query

from app.api.deps import AssetServiceDep, CurrentUserDep
from app.api.v1.schemas import (
    ApiResponse,
    AssetCreate,
    AssetRead,
    CleanupResult,
    DownloadUrlRead,
    UploadRequest,
    UploadTicketRead,
)
from app.core.settings import settings


router = APIRouter(tags=["assets"])


@router.post("/canvases/{canvas_id}/assets/upload", response_model=ApiResponse[UploadTicketRead])
def request_upload(canvas_id: uuid.UUID, payload: UploadRequest, user=CurrentUserDep, service=AssetServiceDep):
    ticket = service.request_upload(
        user.id,
        canvas_id,
        file_name=payload.file_name,
        file_type=payload.file_type,
        file_size=payload.file_size,
    )
    return ApiResponse(
        data=UploadTicketRead(upload_url=ticket.upload_url, public_url=ticket.public_url, key=ticket.key),
        message="Upload URL generated successfully",
    )


@router.post("/canvases/{canvas_id}/assets", response_model=ApiResponse[AssetRead], status_code=201)
def create_asset_record(canvas_id: uuid.UUID, payload: AssetCreate, user=CurrentUserDep, service=AssetServiceDep):
    asset = service.create_asset_record(
        user.id,
        canvas_id,
        external_asset_id=payload.external_asset_id,
        storage_key=payload.storage_key,
        public_url=payload.public_url,
        file_name=payload.file_name,
        file_type=payload.file_type,
        file_size=payload.file_size,
    )
    return ApiResponse(data=AssetRead.model_validate(asset), message="Asset record created successfully")


@router.get("/canvases/{canvas_id}/assets", response_model=ApiResponse[list[AssetRead]])
def list_assets(canvas_id: uuid.UUID, user=CurrentUserDep, service=AssetServiceDep):
    assets = service.list_assets(user.id, canvas_id)
    return ApiResponse(
        data=[AssetRead.model_validate(asset) for asset in assets],
        message=f"Found {len(assets)} assets for canvas",
    )


@router.get(
    "/canvases/{canvas_id}/assets/by-external/{external_asset_id}",
    response_model=ApiResponse[AssetRead],
)
def get_asset_by_external_id(
    canvas_id: uuid.UUID,
    external_asset_id: str,
    user=CurrentUserDep,
    service=AssetServiceDep,
):
    asset = service.get_asset_by_external_id(user.id, canvas_id, external_asset_id)
    return ApiResponse(data=AssetRead.model_validate(asset))


@router.post("/canvases/{canvas_id}/assets/cleanup", response_model=ApiResponse[CleanupResult])
def cleanup_orphaned_assets(
    canvas_id: uuid.UUID,
    min_age_seconds: int | None = Query(default=None, ge=0),
    user=CurrentUserDep,
    service=AssetServiceDep,
):
    if min_age_seconds is None:
        min_age_seconds = settings.orphan_min_age_seconds
    deleted = service.cleanup_orphaned_assets(user.id, canvas_id, min_age_seconds=min_age_seconds)
    return ApiResponse(data=CleanupResult(deleted_count=deleted), message=f"Removed {deleted} orphaned assets")


@router.get("/assets/{asset_id}/download", response_model=ApiResponse[DownloadUrlRead])
def get_download_url(asset_id: uuid.UUID, user=CurrentUserDep, service=AssetServiceDep):
    url = service.get_download_url(user.id, asset_id)
    return ApiResponse(data=DownloadUrlRead(download_url=url), message="Asset download URL generated successfully")


@router.delete("/assets/{asset_id}", response_model=ApiResponse[None])
def delete_asset(asset_id: uuid.UUID, user=CurrentUserDep, service=AssetServiceDep):
    service.delete_asset(user.id, asset_id)
    return ApiResponse(message="Asset deleted successfully")
