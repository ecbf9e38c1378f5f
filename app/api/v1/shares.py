import uuid

from fastapi import APIRouter

from app.api.deps import CanvasServiceDep, CurrentUserDep
from app.api.v1.schemas import ApiResponse, ShareCreate, ShareRead


router = APIRouter(tags=["shares"])


@router.post("/canvases/{canvas_id}/shares", response_model=ApiResponse[ShareRead], status_code=201)
def share_canvas(canvas_id: uuid.UUID, payload: ShareCreate, user=CurrentUserDep, service=CanvasServiceDep):
    share = service.share_canvas(user.id, canvas_id, payload.target_user_id, payload.permission_level)
    return ApiResponse(data=ShareRead.model_validate(share), message="Canvas shared successfully")


@router.get("/canvases/{canvas_id}/shares", response_model=ApiResponse[list[ShareRead]])
def list_shares(canvas_id: uuid.UUID, user=CurrentUserDep, service=CanvasServiceDep):
    shares = service.list_shares(user.id, canvas_id)
    return ApiResponse(
        data=[ShareRead.model_validate(share) for share in shares],
        message=f"Found {len(shares)} canvas shares",
    )


@router.delete("/canvases/{canvas_id}/shares/{target_user_id}", response_model=ApiResponse[None])
def remove_share(canvas_id: uuid.UUID, target_user_id: str, user=CurrentUserDep, service=CanvasServiceDep):
    service.remove_share(user.id, canvas_id, target_user_id)
    return ApiResponse(message="Canvas share removed successfully")
