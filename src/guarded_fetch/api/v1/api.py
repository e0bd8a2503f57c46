from fastapi import APIRouter

from .fetch import router as fetch_router
from .health import router as health_router


api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(fetch_router)
