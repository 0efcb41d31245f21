"""Main FastAPI application for gramsearch."""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import structlog

from .api import documents_router, health_router, search_router
from .backend_instance import search_backend
from .config import get_settings
from .core.exceptions import BackendUnavailableError, SearchTimeoutError
from .models.response import ErrorResponse

settings = get_settings()

logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info(
        "Starting gramsearch service",
        version=settings.app_version,
        backend=search_backend.name
    )

    yield

    logger.info("Shutting down gramsearch service")
    await search_backend.disconnect()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Fuzzy and prefix full-text search over n-gram and edge-gram indexes",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next) -> Response:
    """Log all HTTP requests."""
    start_time = time.time()

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        client_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent")
    )

    response = await call_next(request)

    process_time = time.time() - start_time
    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time_ms=round(process_time * 1000, 2)
    )

    return response


def _error_response(status_code: int, error: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            message=message,
            details=details
        ).model_dump(mode="json")
    )


@app.exception_handler(SearchTimeoutError)
async def search_timeout_handler(request: Request, exc: SearchTimeoutError) -> JSONResponse:
    """Report searches that ran out of time."""
    logger.warning("Search timed out", url=str(request.url), timeout=exc.timeout)
    return _error_response(504, "Gateway Timeout", str(exc), {"timeout": exc.timeout})


@app.exception_handler(BackendUnavailableError)
async def backend_unavailable_handler(
    request: Request, exc: BackendUnavailableError
) -> JSONResponse:
    """Report storage failures."""
    logger.error(
        "Storage backend unavailable",
        url=str(request.url),
        operation=exc.operation,
        error=str(exc)
    )
    return _error_response(
        503,
        "Service Unavailable",
        "The storage backend is unavailable",
        {"operation": exc.operation, "exception": str(exc)} if settings.debug else None
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle global exceptions."""
    logger.error(
        "Unhandled exception",
        method=request.method,
        url=str(request.url),
        error=str(exc),
        exc_info=True
    )

    return _error_response(
        500,
        "Internal Server Error",
        "An unexpected error occurred",
        {"exception": str(exc)} if settings.debug else None
    )


# Include API routers
app.include_router(search_router)
app.include_router(documents_router)
app.include_router(health_router)


# Root endpoint
@app.get("/", summary="Root endpoint", description="Get basic information about the API")
async def root() -> dict:
    """Root endpoint with basic API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Fuzzy and prefix full-text search",
        "backend": search_backend.name,
        "docs_url": "/docs",
        "health_url": "/api/v1/health",
        "status": "running"
    }


# API info endpoint
@app.get("/api", summary="API information", description="Get detailed API information")
async def api_info() -> dict:
    """Get detailed API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "endpoints": {
            "search": "/api/v1/search/{query}",
            "search_body": "/api/v1/search",
            "documents": "/api/v1/documents",
            "documents_batch": "/api/v1/documents/batch",
            "remove_document": "/api/v1/documents/{doc_id}",
            "cleanup": "/api/v1/maintenance/cleanup",
            "health": "/api/v1/health",
            "status": "/api/v1/status",
            "metrics": "/api/v1/metrics"
        },
        "features": [
            "Typo-tolerant matching through character n-grams",
            "Prefix matching through edge-grams",
            "Exact word boost",
            "Metadata filters",
            "Highlighted snippets",
            "In-memory, Redis and Upstash storage"
        ],
        "limits": {
            "default_limit": settings.default_limit,
            "max_limit": settings.max_limit,
            "max_query_length": settings.max_query_length,
            "search_timeout_s": search_backend.search_timeout
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "gramsearch.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
        log_level=settings.log_level.lower()
    )
