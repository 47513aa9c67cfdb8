"""Health check endpoint."""

from fastapi import APIRouter, Request
import platform
import sys

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Service health and wiring info."""
    services = getattr(request.app.state, "services", None)
    return {
        "status": "healthy" if services is not None else "starting",
        "store_backend": services.settings.store_backend if services else None,
        "push_supported": services.store.supports_push if services else None,
        "python_version": sys.version,
        "platform": platform.platform(),
    }
