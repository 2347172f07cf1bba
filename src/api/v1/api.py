from fastapi import APIRouter

from .context import router as context_router
from .generation import router as generation_router
from .health import router as health_router


api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(context_router)
api_router.include_router(generation_router)
