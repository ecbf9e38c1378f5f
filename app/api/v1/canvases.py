import uuid

from fastapi import APIRouter, Query

from app.api.deps import CanvasServiceDep, CurrentUserDep
from app.api.v1.schemas import (
    ApiResponse,
    AssetRead,
    CanvasCreate,
    CanvasDocumentRead,
    CanvasListItemRead,
    CanvasListRead,
    CanvasRead,
    CanvasSave,
    CanvasVisibilityUpdate,
)


router = APIRouter(tags=["canvases"])


@router.post("/canvases", response_model=ApiResponse[CanvasRead], status_code=201)
def create_canvas(payload: CanvasCreate, user=CurrentUserDep, service=CanvasServiceDep):
    canvas = service.create_canvas(
        user.id,
        payload.name,
        description=payload.description,
        is_public=payload.is_public,
    )
    return ApiResponse(data=CanvasRead.model_validate(canvas), message="Canvas created successfully")


@router.get("/canvases", response_model=ApiResponse[CanvasListRead])
def list_canvases(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    include_shared: bool = Query(default=True),
    user=CurrentUserDep,
    service=CanvasServiceDep,
):
    result = service.list_canvases(user.id, page=page, limit=limit, include_shared=include_shared)
    items = [
        CanvasListItemRead(
            canvas_id=item.canvas.canvas_id,
            name=item.canvas.name,
            description=item.canvas.description,
            thumbnail_url=item.canvas.thumbnail_url,
            is_public=item.canvas.is_public,
            updated_at=item.canvas.updated_at,
            version=item.canvas.version,
            is_owner=item.is_owner,
            permission=item.permission,
        )
        for item in result.items
    ]
    return ApiResponse(
        data=CanvasListRead(canvases=items, total_count=result.total_count, page=page, limit=limit),
        message=f"Found {len(items)} canvases",
    )


@router.get("/canvases/{canvas_id}", response_model=ApiResponse[CanvasDocumentRead])
def load_canvas(canvas_id: uuid.UUID, user=CurrentUserDep, service=CanvasServiceDep):
    canvas, assets = service.load_canvas(user.id, canvas_id)
    return ApiResponse(
        data=CanvasDocumentRead(
            document=canvas.document_data or {},
            session=canvas.session_data,
            metadata=CanvasRead.model_validate(canvas),
            assets=[AssetRead.model_validate(asset) for asset in assets],
        ),
        message="Canvas loaded successfully",
    )


@router.put("/canvases/{canvas_id}", response_model=ApiResponse[CanvasRead])
def save_canvas(canvas_id: uuid.UUID, payload: CanvasSave, user=CurrentUserDep, service=CanvasServiceDep):
    canvas = service.save_canvas(
        user.id,
        canvas_id,
        payload.document,
        session=payload.session,
        name=payload.name,
        description=payload.description,
        thumbnail_url=payload.thumbnail_url,
    )
    return ApiResponse(data=CanvasRead.model_validate(canvas), message="Canvas saved successfully")


@router.patch("/canvases/{canvas_id}/visibility", response_model=ApiResponse[CanvasRead])
def update_visibility(
    canvas_id: uuid.UUID,
    payload: CanvasVisibilityUpdate,
    user=CurrentUserDep,
    service=CanvasServiceDep,
):
    canvas = service.update_visibility(user.id, canvas_id, payload.is_public)
    return ApiResponse(data=CanvasRead.model_validate(canvas), message="Canvas visibility updated")


@router.delete("/canvases/{canvas_id}", response_model=ApiResponse[None])
def delete_canvas(canvas_id: uuid.UUID, user=CurrentUserDep, service=CanvasServiceDep):
    service.delete_canvas(user.id, canvas_id)
    return ApiResponse(message="Canvas deleted successfully")
