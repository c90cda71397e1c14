"""
Partner Federation API Server

Entry point for the FastAPI application.
"""

from __future__ import annotations

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docsign_federation.core.config import Settings, get_settings
from docsign_federation.core.database import init_db
from docsign_federation.core.errors import register_error_handlers
from docsign_federation.core.logging import configure_logging
from docsign_federation.core.middleware import SecurityHeadersMiddleware
from docsign_federation.core.redis import close_redis
from docsign_federation.api.v1 import router as api_v1_router
from docsign_federation.api.v1.external import page_router
from docsign_federation.services.notifier import PartnerNotifier
from docsign_federation.services.token_store import (
    InMemoryTokenStore,
    RedisTokenStore,
    TokenStore,
)
from docsign_federation.tasks.token_sweep import start_token_sweeper, stop_token_sweeper

log = structlog.get_logger()


def build_token_store(settings: Settings) -> TokenStore:
    if settings.token_store_backend == "redis":
        return RedisTokenStore(
            ttl_seconds=settings.token_ttl_seconds, redis_url=settings.redis_url
        )
    return InMemoryTokenStore(ttl_seconds=settings.token_ttl_seconds)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Partner Federation",
        description="Silent sign-in and tenant provisioning for partner platform users.",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    app.state.settings = settings
    app.state.token_store = build_token_store(settings)
    app.state.notifier = PartnerNotifier.from_settings(settings)
    app.state.sweeper = None

    # Middleware (last added runs first)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    register_error_handlers(app)

    # Browser landing page (not under /api)
    app.include_router(page_router, tags=["Federation"])

    # API routes
    app.include_router(api_v1_router, prefix="/api")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check endpoint for startup probes."""
        return {"status": "ready", "federation_configured": bool(settings.external_auth_secret)}

    @app.on_event("startup")
    async def on_startup():
        if not settings.external_auth_secret:
            log.warning("federation.unconfigured")
        if not app.state.notifier.configured:
            log.warning("webhook.unconfigured")
        if settings.create_tables:
            await init_db()
        app.state.sweeper = start_token_sweeper(
            app.state.token_store, settings.token_sweep_interval_seconds
        )
        log.info("Partner federation starting", token_store=settings.token_store_backend)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Partner federation shutting down")
        await stop_token_sweeper(app.state.sweeper)
        await close_redis()

    return app


app = create_app()


def run() -> None:
    """Serve the app with uvicorn on the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "docsign_federation.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )
