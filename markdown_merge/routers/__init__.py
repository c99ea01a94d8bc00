"""API router package."""

from fastapi import APIRouter

from .health import router as health_router
from .merge import router as merge_router
from .observability import router as observability_router
from .repair import router as repair_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(merge_router)
api_router.include_router(repair_router)
api_router.include_router(observability_router)

__all__ = ["api_router"]
