"""Health check and monitoring API endpoints."""

import time
from datetime import datetime

import psutil
from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse

from ..config import get_settings
from ..core.exceptions import BackendUnavailableError
from ..models.response import HealthResponse, MetricsResponse

router = APIRouter(prefix="/api/v1", tags=["health"])
settings = get_settings()

# Import the global search backend instance
from ..backend_instance import search_backend

# Track application start time
app_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health status of the search service"
)
async def health_check() -> HealthResponse:
    """
    Perform a health check on the search service.

    Pings the storage backend; an unreachable store marks the service
    unhealthy. A high share of stale candidates marks it degraded.
    """
    dependencies = {"search_engine": "healthy", "storage_backend": "healthy"}

    try:
        await search_backend.ping()
    except BackendUnavailableError:
        dependencies["storage_backend"] = "unhealthy"

    engine_stats = search_backend.engine.get_stats()
    if engine_stats["stale_candidates"] > max(engine_stats["total_queries"], 10):
        dependencies["search_engine"] = "degraded"

    if all(status == "healthy" for status in dependencies.values()):
        status = "healthy"
    elif any(status == "unhealthy" for status in dependencies.values()):
        status = "unhealthy"
    else:
        status = "degraded"

    return HealthResponse(
        status=status,
        version=settings.app_version,
        backend=search_backend.name,
        uptime=time.time() - app_start_time,
        dependencies=dependencies
    )


@router.get(
    "/health/ready",
    summary="Readiness check",
    description="Check if the service is ready to accept requests"
)
async def readiness_check() -> JSONResponse:
    """Check whether the backend answers requests."""
    try:
        await search_backend.ping()

        return JSONResponse(
            status_code=200,
            content={
                "status": "ready",
                "backend": search_backend.name,
                "timestamp": datetime.utcnow().isoformat()
            }
        )

    except Exception as e:
        return JSONResponse(
            status_code=503,
            content={
                "status": "not_ready",
                "error": str(e),
                "timestamp": datetime.utcnow().isoformat()
            }
        )


@router.get(
    "/health/live",
    summary="Liveness check",
    description="Check if the service is alive and responding"
)
async def liveness_check() -> JSONResponse:
    """Report that the process is alive."""
    return JSONResponse(
        status_code=200,
        content={
            "status": "alive",
            "timestamp": datetime.utcnow().isoformat(),
            "uptime": time.time() - app_start_time
        }
    )


@router.get(
    "/status",
    summary="Service status",
    description="Get detailed status information about the service"
)
async def service_status() -> JSONResponse:
    """
    Get detailed status information about the service.

    Includes backend statistics and the active search configuration.
    """
    try:
        stats = await search_backend.get_stats()
    except BackendUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Failed to get service status: {e}")

    return JSONResponse(
        status_code=200,
        content={
            "service": {
                "name": settings.app_name,
                "version": settings.app_version,
                "status": "running",
                "uptime": time.time() - app_start_time,
                "start_time": datetime.fromtimestamp(app_start_time).isoformat()
            },
            "configuration": {
                "backend": settings.backend,
                "search": search_backend.engine.config.model_dump(),
                "default_limit": settings.default_limit,
                "max_query_length": settings.max_query_length,
                "debug": settings.debug
            },
            "statistics": stats,
            "timestamp": datetime.utcnow().isoformat()
        }
    )


@router.get(
    "/metrics",
    response_model=MetricsResponse,
    summary="Get performance metrics",
    description="Get query statistics and process resource usage"
)
async def get_metrics() -> MetricsResponse:
    """Get query statistics and memory usage of the service."""
    stats = search_backend.engine.get_stats()
    memory_usage_mb = psutil.Process().memory_info().rss / (1024 * 1024)

    return MetricsResponse(
        total_queries=stats["total_queries"],
        average_response_time_ms=stats["average_execution_time_ms"],
        match_rate=stats["match_rate"],
        stale_candidates=stats["stale_candidates"],
        memory_usage_mb=memory_usage_mb
    )
