from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.api.v1.router import api_router
from app.database import init_db, async_session_factory
from app.jobs.scheduler import start_scheduler, shutdown_scheduler
from app.services.cache_service import get_cache, RedisCache
from app.services.picking.exceptions import (
    PickingSessionError,
    SessionNotFoundError,
    SessionNotActiveError,
    NotPausedError,
    NoOrdersAvailableError,
    SessionConcurrencyError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create picking tables (Alembic manages them in production)
    - Start background scheduler (outbox dispatch, cache cleanup)
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    if settings.SCHEDULER_ENABLED:
        start_scheduler()

    yield

    # Shutdown
    shutdown_scheduler()
    backend = get_cache().backend
    if isinstance(backend, RedisCache):
        await backend.close()
    logger.info("Shutting down...")


# OpenAPI Tags with detailed descriptions
OPENAPI_TAGS = [
    {"name": "Picking Sessions", "description": "Scan-validated picking over optimized warehouse routes"},
    {"name": "Health", "description": "Service health"},
]

FULL_API_DESCRIPTION = """
## Picking Session Engine

Groups pending orders into **picking sessions**, builds an aggregated picking
list ordered along a serpentine warehouse route, and validates every barcode
scan against it.

| Area | Description |
|------|-------------|
| **Sessions** | Create, pause, resume, cancel and complete picking sessions |
| **Scanning** | Barcode and location validation with per-order completion |
| **Shortages** | Shortage reports recorded for the inventory system |
| **Analytics** | Picker performance and daily warehouse statistics |

Every request carries an `X-Organization-ID` header.
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=FULL_API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


def _status_for(exc: PickingSessionError) -> int:
    if isinstance(exc, SessionNotFoundError):
        return 404
    if isinstance(exc, (SessionNotActiveError, NotPausedError, NoOrdersAvailableError, SessionConcurrencyError)):
        return 409
    return 422


@app.exception_handler(PickingSessionError)
async def picking_exception_handler(request: Request, exc: PickingSessionError):
    """Map picking lifecycle errors to HTTP responses."""
    status_code = _status_for(exc)
    if status_code == 409:
        logger.warning(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    from sqlalchemy import text
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    # Check database connectivity
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    # Return 503 if unhealthy
    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
