"""Virtual try-on job service - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tryon.api.v1.health import router as health_root_router
from tryon.api.v1.router import v1_router
from tryon.config import settings
from tryon.logging_config import setup_logging
from tryon.services import Services, build_services

logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the app. Pass ``services`` to run against pre-wired collaborators."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic."""
        wired = services
        if wired is None:
            setup_logging()
            logger.info("Starting try-on job service (store: %s)", settings.store_backend)
            wired = await build_services(settings)
        app.state.services = wired

        await wired.trigger.start()
        logger.info("Dispatch queue started")

        yield

        logger.info("Shutting down try-on job service")
        await wired.trigger.stop()

    app = FastAPI(
        title="Try-On Job Service",
        description="Asynchronous virtual try-on job orchestration",
        version="0.1.0",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    # CORS: frontend dev servers plus any origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000", "*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_root_router, tags=["health"])  # GET /health at root
    app.include_router(v1_router)  # All /api/v1/* endpoints
    return app


app = create_app()
