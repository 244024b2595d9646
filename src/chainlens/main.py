"""Chainlens API

FastAPI application exposing the chat-agent turn-processing core.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from .api.routers import cache_router, chat_router, health_router
from .config import Settings, settings
from .service import create_chat_service

logger = logging.getLogger(__name__)


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application for the given settings."""
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """Application lifespan - startup and shutdown logic"""
        logging.basicConfig(
            level=app_settings.log_level.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        logger.info("Starting %s v%s", app_settings.app_name, app_settings.app_version)
        service = create_chat_service(app_settings)
        service.start()
        app.state.chat_service = service
        yield
        logger.info("Shutting down...")
        await service.aclose()

    app = FastAPI(
        title=app_settings.app_name,
        description=app_settings.app_description,
        version=app_settings.app_version,
        debug=app_settings.environment == "development",
        lifespan=lifespan,
    )

    # Add CORS middleware
    if app_settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=app_settings.cors_origins.split(","),
            allow_credentials=app_settings.cors_credentials,
            allow_methods=app_settings.cors_methods.split(","),
            allow_headers=app_settings.cors_headers.split(","),
        )

    app.include_router(health_router)
    app.include_router(chat_router)
    app.include_router(cache_router)

    @app.get("/")
    async def root() -> RedirectResponse:
        """Redirect root to API docs"""
        return RedirectResponse(url="/docs")

    return app


app = create_app()
