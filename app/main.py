"""
FastAPI application entry point.
Main application setup and configuration.
"""

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from typing import Any, Callable
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import ValidationError as PydanticValidationError
import logging

from app.config import settings
from app.database import get_db, test_database_connection, create_tables, close_db_connection
from app.routers import properties_router
from app.utils.cache import TTLCache
from app.utils.dependencies import get_ttl_cache
from app.utils.exceptions import APIException
from app.services.error_handler import ErrorHandlerService

# Configure logging
logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    db_connected = await test_database_connection()
    if not db_connected:
        logger.error("Failed to connect to database on startup")
    elif settings.is_sqlite:
        # Local sqlite databases have no migration step
        await create_tables()

    yield

    # Shutdown
    logger.info("Shutting down application")
    await close_db_connection()


# Create FastAPI application instance
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Property listings whose photos, database rows and read cache stay consistent.

    ## Features

    * **Atomic creation**: A property and all of its photo rows are written in one transaction
    * **Read-through cache**: Listing and detail reads are cached with TTLs and scoped invalidation
    * **Ownership checks**: Only the owner (or an admin) can update or delete a property
    * **Photo reconciliation**: Orphan photos are linked to the property that references their URL

    ## Authentication

    Mutating endpoints require a JWT issued by the identity provider, sent in the
    Authorization header as `Bearer <token>`.
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "Properties",
            "description": "Property listing management and photo reconciliation"
        },
        {
            "name": "Health",
            "description": "System health endpoints"
        }
    ],
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(properties_router, prefix=settings.api_v1_prefix)


# Global exception handlers using ErrorHandlerService (most specific class wins)
EXCEPTION_HANDLERS = (
    (APIException, ErrorHandlerService.handle_api_exception),
    (RequestValidationError, ErrorHandlerService.handle_validation_error),
    (PydanticValidationError, ErrorHandlerService.handle_validation_error),
    (SQLAlchemyError, ErrorHandlerService.handle_database_error),
    (StarletteHTTPException, ErrorHandlerService.handle_http_exception),
    (Exception, ErrorHandlerService.handle_unexpected_error),
)


def _exception_handler(handle: Callable[[Any, Request], JSONResponse]):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        return handle(exc, request)
    return handler


for exception_class, handle in EXCEPTION_HANDLERS:
    app.add_exception_handler(exception_class, _exception_handler(handle))


@app.get("/", tags=["Health"])
async def root():
    """Basic API information."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "docs": "/docs",
        "api_prefix": settings.api_v1_prefix
    }


@app.get("/health", tags=["Health"])
@app.get(f"{settings.api_v1_prefix}/health", tags=["Health"], include_in_schema=False)
async def health_check(
    db: AsyncSession = Depends(get_db),
    cache: TTLCache = Depends(get_ttl_cache)
):
    """
    Health check endpoint with database connectivity test and cache statistics.
    Used by container health checks and load balancers.
    """
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(
            status_code=503,
            detail="Database connection failed"
        )

    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "database": "connected",
        "cache": cache.stats()
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
