"""
Health Check Routes
Service health monitoring endpoints
Source: https://microservices.io/patterns/observability/health-check-api.html
Verified: 2025-11-14
"""

from typing import Any

from fastapi import APIRouter, Response, status

from src.api.config import settings
from src.db.connection import check_db_connection

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Liveness probe; does not touch the database."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@router.get("/health/detailed")
async def detailed_health_check(response: Response) -> dict[str, Any]:
    """
    Readiness probe.

    Answers 503 when the database is unreachable so load balancers stop
    routing to this instance.
    """
    db_healthy = await check_db_connection()
    if not db_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "healthy" if db_healthy else "unhealthy",
        "service": settings.APP_NAME,
        "checks": {"database": "healthy" if db_healthy else "unhealthy"},
    }
