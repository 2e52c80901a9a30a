from fastapi import APIRouter

from app.api.v1.endpoints import cached, day_picture, earth_image

api_router = APIRouter()

api_router.include_router(day_picture.router)
api_router.include_router(earth_image.router)
api_router.include_router(cached.router)
