"""FastAPI application with lifespan management and health endpoints."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from accessgate.api.dependencies import reset_query_gate
from accessgate.api.routes import access_requests, audit, queries, tickets, users
from accessgate.config import settings
from accessgate.services.database import (
    close_mongodb_connection,
    connect_to_mongodb,
    ensure_indexes,
    get_database,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan (startup and shutdown).

    Args:
        app: FastAPI application instance

    Yields:
        None
    """
    logger.info(
        "Starting AccessGate",
        app_name=settings.app_name,
        version=settings.app_version,
        database=settings.mongodb_database,
    )

    try:
        await connect_to_mongodb(
            uri=settings.mongodb_uri,
            database_name=settings.mongodb_database,
        )
        await ensure_indexes(get_database())
        logger.info("Connected to MongoDB", database=settings.mongodb_database)
    except Exception as e:
        logger.error("Failed to connect to MongoDB", error=str(e))
        raise

    yield

    logger.info("Shutting down AccessGate")
    await reset_query_gate()
    await close_mongodb_connection()
    logger.info("Closed MongoDB connection")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="AccessGate - query-time access decisions with administrator review",
    lifespan=lifespan,
)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next: Callable) -> Response:
    """Add security headers to all responses."""
    response = await call_next(request)
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Cache-Control"] = "no-store"
    return response


# Register API routers
app.include_router(queries.router, prefix="/api/v1")
app.include_router(tickets.router, prefix="/api/v1")
app.include_router(access_requests.router, prefix="/api/v1")
app.include_router(users.router, prefix="/api/v1")
app.include_router(audit.router, prefix="/api/v1")


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint.

    Returns:
        JSONResponse with health status
    """
    return JSONResponse(
        content={
            "status": "healthy",
            "app": settings.app_name,
            "version": settings.app_version,
        }
    )


@app.get("/")
async def root() -> JSONResponse:
    """Root endpoint with API information.

    Returns:
        JSONResponse with API information
    """
    return JSONResponse(
        content={
            "app": settings.app_name,
            "version": settings.app_version,
            "description": "AccessGate API",
            "docs_url": "/docs",
        }
    )
