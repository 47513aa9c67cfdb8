"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from tryon.api.v1.health import router as health_router
from tryon.api.v1.models_api import router as models_router
from tryon.api.v1.jobs import router as jobs_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(models_router, tags=["models"])
v1_router.include_router(jobs_router, tags=["jobs"])
