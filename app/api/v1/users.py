from fastapi import APIRouter

from app.api.deps import CurrentUserDep
from app.api.v1.schemas import ApiResponse, UserRead


router = APIRouter(tags=["users"])


@router.get("/users/me", response_model=ApiResponse[UserRead])
def read_current_user(user=CurrentUserDep):
    return ApiResponse(data=UserRead.model_validate(user))
