"""
FastAPI application entry point.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from flagforge.core.config import settings
from flagforge.core.features.dependencies import get_payload_cache
from flagforge.core.hooks.manager import FEATURE_UPDATED, hooks
from flagforge.core.interfaces import CacheBackend
from flagforge.core.logging import configure_logging
from flagforge.api.dependencies.database import get_db
from flagforge.api.routes import router as api_router
from flagforge.api.middleware.logging import LoggingMiddleware
from flagforge.api.middleware.request_id import RequestIdMiddleware
from flagforge.models.database import close_db, get_session_factory, init_db
from flagforge.services.webhook import FeatureWebhookNotifier

logger = structlog.get_logger()

HEALTH_PROBE_KEY = "health:probe"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    # Startup
    configure_logging(settings)

    if settings.database.create_tables:
        await init_db()

    cache = get_payload_cache()
    if hasattr(cache, "connect"):
        await cache.connect()

    notifier = FeatureWebhookNotifier(
        get_session_factory(),
        timeout=settings.features.webhook_timeout,
    )
    hooks.register(FEATURE_UPDATED, notifier, source="webhooks")
    logger.info(
        "Application started",
        feature_backend=settings.features.backend,
        cache_backend=settings.features.cache_backend,
    )

    yield

    # Shutdown
    hooks.unregister(FEATURE_UPDATED, notifier)
    await notifier.drain()
    if hasattr(cache, "disconnect"):
        await cache.disconnect()
    await close_db()


async def _probe(name: str, check) -> dict:
    start = time.perf_counter()
    try:
        await check()
    except Exception as e:
        logger.error("Health check failed", component=name, error=str(e))
        return {"status": "unhealthy", "message": str(e)}
    return {
        "status": "healthy",
        "latency_ms": round((time.perf_counter() - start) * 1000, 2),
    }


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # Middleware (last added is outermost)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PATCH"],
        allow_headers=["*"],
    )

    # Routes
    app.include_router(api_router, prefix="/api")

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": str(exc) if settings.debug else "An error occurred",
            },
        )

    @app.get("/health")
    async def health_check():
        """Liveness probe; touches no dependencies."""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
        }

    @app.get("/health/detailed")
    async def health_check_detailed(
        db: AsyncSession = Depends(get_db),
        cache: CacheBackend = Depends(get_payload_cache),
    ):
        """Readiness probe: database and payload cache round trips."""
        components = {
            "database": await _probe("database", lambda: db.execute(text("SELECT 1"))),
            "cache": await _probe("cache", lambda: cache.get(HEALTH_PROBE_KEY)),
        }
        healthy = all(c["status"] == "healthy" for c in components.values())
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "healthy" if healthy else "unhealthy",
                "version": settings.app_version,
                "components": components,
            },
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "flagforge.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        workers=settings.workers,
    )
