"""FastAPI application factory.

Creates the app with tenant middleware, logging middleware, metrics middleware,
CORS, Sentry, a lifespan that builds the store handle and every service, and
the v1 API router.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.herdbook.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.herdbook.api.middleware.tenant import TenantAuthMiddleware
from src.herdbook.api.v1 import health
from src.herdbook.api.v1.router import router as v1_router
from src.herdbook.batch.executor import BatchExecutor
from src.herdbook.batch.repository import BatchRepository
from src.herdbook.config import get_settings
from src.herdbook.core.database import Database
from src.herdbook.core.errors import register_exception_handlers
from src.herdbook.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.herdbook.core.redis import close_redis, create_redis_client
from src.herdbook.core.tenant import TenantDirectory
from src.herdbook.iot.ingestion import ReadingIngestor
from src.herdbook.queries.analytics import FeedAnalytics
from src.herdbook.queries.composer import TenantQueryComposer
from src.herdbook.tasks.repository import TaskRepository


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: build the store handle and services, tear down on exit."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    database = Database(
        settings.DATABASE_URL,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
    )
    redis_client = create_redis_client(settings.REDIS_URL) if settings.REDIS_URL else None

    task_repository = TaskRepository(session_factory=database.session)

    app.state.database = database
    app.state.redis_client = redis_client
    app.state.tenant_directory = TenantDirectory(
        session_factory=database.session,
        redis_client=redis_client,
        cache_ttl=settings.TENANT_CACHE_TTL_SECONDS,
    )
    app.state.query_composer = TenantQueryComposer(
        session_factory=database.session,
        default_limit=settings.DEFAULT_PAGE_SIZE,
        max_limit=settings.MAX_PAGE_SIZE,
    )
    app.state.feed_analytics = FeedAnalytics(session_factory=database.session)
    app.state.task_repository = task_repository
    app.state.batch_executor = BatchExecutor(
        store=BatchRepository(session_factory=database.session),
        tasks=task_repository,
        max_batch_size=settings.MAX_BATCH_SIZE,
    )
    app.state.reading_ingestor = ReadingIngestor(session_factory=database.session)
    log.info("startup.complete", environment=settings.ENVIRONMENT.value)

    yield

    await database.dispose()
    await close_redis(redis_client)
    log.info("shutdown.complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Herdbook API",
        version="0.1.0",
        description="Tenant-scoped farm records: enhanced listings and batch operations",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # Tenant middleware (inner -- authenticates and resolves tenant context)
    app.add_middleware(TenantAuthMiddleware)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(v1_router, prefix="/api/v1")

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
