"""
Main FastAPI application for the Join Inference & Query Model Engine

This module creates and configures the FastAPI application with:
- Internal API routes (join suggestions, query model compilation, schema events)
- Health check endpoint
- Auto-generated API documentation
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from loguru import logger

from joinengine.api.dependencies import service_dependency
from joinengine.api.routes import query_models, schema_events, suggestions
from joinengine.api.schemas.health import HealthResponse
from joinengine.config.settings import settings
from joinengine.service import JoinEngineService
from joinengine.utils.logger import setup_logger

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan events

    - Startup: configure logging, log configuration summary
    - Shutdown: log shutdown
    """
    setup_logger()
    logger.info("🚀 Join engine API starting...")
    logger.info(f"📚 API docs available at /docs (metadata table: {settings.metadata_table})")
    logger.info(
        f"⚙️  Cache TTL {settings.suggestion_cache_ttl_seconds}s, "
        f"low-confidence floor {settings.low_confidence_floor}, "
        f"user-authored joins {'on' if settings.allow_user_authored_joins else 'off'}"
    )

    yield

    logger.info("🛑 Join engine API shutting down...")


app = FastAPI(
    title="Join Inference & Query Model Engine API",
    description="""
    Internal API for relationship inference over constraint-free data sources
    and validated multi-table query compilation.

    ## Features

    * **Join suggestions** inferred from naming conventions, types and junction tables
    * **Query model validation** against the live schema and known-good joins
    * **Parameterized SQL** compiled deterministically from validated models
    * **Cache invalidation** driven by ingestion schema events
    """,
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.include_router(suggestions.router)
app.include_router(query_models.router)
app.include_router(schema_events.router)


@app.get("/", tags=["root"])
async def root():
    """
    Root endpoint - API information
    """
    return {
        "service": "Join Inference & Query Model Engine API",
        "version": API_VERSION,
        "status": "running",
        "docs": "/docs",
        "endpoints": {
            "health": "/health",
            "join_suggestions": "/internal/data-sources/{id}/schemas/{schema}/join-suggestions",
            "compile": "/internal/query-models/compile",
            "validate": "/internal/query-models/validate",
            "schema_events": "/internal/data-sources/{id}/schemas/{schema}/schema-events",
        },
    }


@app.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(service: JoinEngineService = Depends(service_dependency)):
    """
    Health check endpoint

    Returns service status plus whether the target database is reachable.
    """
    database_ok = await service.ping()
    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        service="joinengine-api",
        version=API_VERSION,
        database=database_ok,
    )
