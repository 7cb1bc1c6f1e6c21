"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures logging, exception handlers, and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from psycopg_pool import ConnectionPool

from src.adapters.identity.http import HttpIdentityStore
from src.adapters.memory.stores import InMemoryIdentityStore, InMemoryProfileStore
from src.adapters.repository.postgres import PostgresProfileStore, run_migrations
from src.api.errors import install_error_handlers
from src.api.v1 import router as v1_router
from src.config.settings import Settings, get_settings
from src.domain.diagnostics import RateLimitProbe
from src.domain.ports import ThrottleStatus

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Identity Reconciliation API v1 - Login, registration and account repair",
    },
]


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates the profile store (connection pool + migrations) on startup
    - Creates the identity store client on startup
    - Closes both on shutdown
    """
    settings = get_settings()
    configure_logging(settings)

    logger.info("Starting application...")

    if settings.use_in_memory_stores:
        logger.warning("Using in-memory stores; nothing will be persisted")
        identity_store = InMemoryIdentityStore()
        app.state.profile_store = InMemoryProfileStore()
        app.state.identity_store = identity_store
        app.state.identity_lookup = identity_store
        logger.info("Application startup complete")
        yield
        logger.info("Shutting down application...")
        return

    logger.info("Connecting to database...")

    # Create connection pool with explicit sizing
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
    )

    logger.info("Running database migrations...")
    run_migrations(pool)

    http_identity = HttpIdentityStore.connect(
        endpoint=settings.identity_endpoint,
        project_id=settings.identity_project_id,
        api_key=settings.identity_api_key,
        timeout=settings.identity_timeout_seconds,
    )

    # Store adapters in app state for dependency injection
    app.state.profile_store = PostgresProfileStore(pool, timeout=settings.pool_timeout_seconds)
    app.state.identity_store = http_identity
    app.state.identity_lookup = http_identity if http_identity.supports_lookup else None
    if app.state.identity_lookup is None:
        logger.info("No identity API key configured; diagnosis will probe with a throwaway credential")

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    http_identity.close()
    pool.close()
    logger.info("Database connection pool and identity client closed")


app = FastAPI(
    title="storefront-identity",
    description="Identity Reconciliation API - Keeps customer profiles and identity accounts in sync",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

install_error_handlers(app)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
def health_check(request: Request) -> JSONResponse:
    """
    Health check endpoint with profile store validation.

    Returns 200 OK if the application and profile store are healthy,
    503 when the store is throttled or unreachable.
    """
    probe = RateLimitProbe(profiles=request.app.state.profile_store)
    result = probe.check_throttled()
    if result is ThrottleStatus.OK:
        return JSONResponse({"status": "healthy"})
    return JSONResponse(
        {"status": result.value},
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
    )
