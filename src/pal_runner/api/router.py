"""Route aggregation -- combines all API sub-routers into a single router."""

from fastapi import APIRouter

from pal_runner.api.health import router as health_router
from pal_runner.api.ws import router as ws_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(ws_router)
