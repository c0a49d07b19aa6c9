"""
FastAPI application entrypoint for the album slideshow service.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from slideshow.api.routes import router as api_router
from slideshow.core.config import get_settings
from slideshow.core.logging import configure_logging
from slideshow.dependencies import get_album_view_registry


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    registry = app.dependency_overrides.get(get_album_view_registry, get_album_view_registry)()
    await registry.stop_all()


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Album Slideshow",
        version="0.1.0",
        description="Keeps a Google Photos album synchronized for an unattended slideshow display.",
        lifespan=_lifespan,
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
