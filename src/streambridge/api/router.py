"""Master API router mounted at /api/v1."""

from fastapi import APIRouter
from streambridge.api.routes import health, stats, streams

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(streams.router)
api_router.include_router(stats.router)
