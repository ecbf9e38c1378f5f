from fastapi import APIRouter

from app.api.v1 import (
    assets,
    canvases,
    shares,
    users,
)


api_router = APIRouter(prefix="/v1")

api_router.include_router(users.router)
api_router.include_router(canvases.router)
api_router.include_router(shares.router)
api_router.include_router(assets.router)
