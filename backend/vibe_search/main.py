"""Vibe Commerce Search Backend - FastAPI Entry Point."""
import sys

# asyncpg is incompatible with Windows ProactorEventLoop (default on Windows).
# Must be set before any asyncio usage.
if sys.platform == "win32":
    import asyncio
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import structlog
from fastapi import FastAPI

from vibe_search.config import settings
from vibe_search.database import engine
from vibe_search.dependencies import close_embedder, log_dispatcher
from vibe_search.integrations.resilience import RateLimiter, get_rate_limiter
from vibe_search.middleware.cors import setup_cors
from vibe_search.middleware.error_handler import setup_error_handlers
from vibe_search.middleware.logging_middleware import LoggingMiddleware
from vibe_search.middleware.rate_limiter import RateLimitMiddleware
from vibe_search.middleware.metrics import MetricsMiddleware, setup_metrics
from vibe_search.api.v1 import search as search_router
from vibe_search.api.v1 import recommendations as recommendations_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    logging.getLogger("vibe_search").setLevel(settings.LOG_LEVEL.upper())
    logger.info("startup", env=settings.APP_ENV, embedding_provider=settings.EMBEDDING_PROVIDER)
    # Sentry init
    if settings.SENTRY_DSN:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration

        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            integrations=[FastApiIntegration()],
            traces_sample_rate=0.1 if settings.APP_ENV == "production" else 1.0,
            environment=settings.APP_ENV,
        )

    yield

    # Shutdown: flush pending interaction logs, close clients, dispose DB engine
    await log_dispatcher.drain()
    await close_embedder()
    from vibe_search.utils.redis_client import close_redis
    await close_redis()
    await engine.dispose()
    logger.info("shutdown")


def create_app(rate_limiter: RateLimiter | None = None) -> FastAPI:
    application = FastAPI(
        title="Vibe Commerce Search API",
        description="Hybrid semantic and keyword product search",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    application.state.rate_limiter = rate_limiter or get_rate_limiter()

    # Middleware (order matters: last added = first executed)
    setup_cors(application)
    setup_error_handlers(application)
    application.add_middleware(LoggingMiddleware)
    application.add_middleware(RateLimitMiddleware, limiter=application.state.rate_limiter)
    application.add_middleware(MetricsMiddleware)

    # Prometheus metrics endpoint
    setup_metrics(application)

    # API Routers
    application.include_router(search_router.router, prefix="/api/v1/search", tags=["Search"])
    application.include_router(recommendations_router.router, prefix="/api/v1/ai", tags=["AI"])

    # Health check
    @application.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
