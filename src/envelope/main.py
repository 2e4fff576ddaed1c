# src/envelope/main.py
"""Main entry point for the Envelope application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine

from envelope.api.v1 import comments_router, devices_router, feed_router, posts_router
from envelope.core.logging import setup_logging
from envelope.core.settings import Settings, get_settings
from envelope.db.session import create_engine, create_session_factory, create_tables
from envelope.services.container import AppServices
from envelope.services.credentials import (
    CredentialStore,
    KeyValueStore,
    build_key_value_store,
)
from envelope.services.region import IpapiRegionResolver, RegionResolver

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    engine: AsyncEngine | None = None,
    key_value_store: KeyValueStore | None = None,
    region_resolver: RegionResolver | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration; read from the environment when omitted.
        engine: Async engine for the post log; built from ``settings`` when omitted.
        key_value_store: Backing store for device credentials.
        region_resolver: Address-to-region lookup used by the region gate.

    Returns:
        The configured application with its collaborators on ``app.state``.
    """
    settings = settings or get_settings()
    engine = engine or create_engine(settings)
    kv_store = key_value_store or build_key_value_store(settings)

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Anonymous, location-gated micro-posting API",
        version=settings.app_version,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.add_middleware(GZipMiddleware)

    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.services = AppServices(
        settings=settings,
        key_value_store=kv_store,
        credentials=CredentialStore(kv_store, settings),
        region_resolver=region_resolver or IpapiRegionResolver(settings),
    )

    app.include_router(devices_router)
    app.include_router(posts_router)
    app.include_router(feed_router)
    app.include_router(comments_router)

    @app.on_event("startup")
    async def on_startup() -> None:
        setup_logging(settings.log_level)
        logger.info("starting %s %s", settings.app_name, settings.app_version)
        await create_tables(app.state.engine)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await app.state.services.close()
        await app.state.engine.dispose()

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint to verify the service is running."""
        return {"status": "ok"}

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with basic information about the API."""
        return {
            "name": f"{settings.app_name} API",
            "version": settings.app_version,
            "docs": "/docs",
        }

    return app


def run() -> None:
    """Serve the application with uvicorn (``envelope-server`` console script)."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "envelope.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
