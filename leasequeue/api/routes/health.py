"""
Health check routes.
"""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import Response

from leasequeue import __version__
from leasequeue.api.dependencies import DatabaseDep
from leasequeue.observability.metrics import get_metrics
from leasequeue.types.api import HealthResponse

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health of the API and database connection.",
)
async def health_check(database: DatabaseDep) -> HealthResponse:
    """
    Perform a health check.

    Reports "degraded" rather than failing when the database is unreachable.
    """
    db_healthy = await database.ping()

    return HealthResponse(
        status="healthy" if db_healthy else "degraded",
        version=__version__,
        database="healthy" if db_healthy else "unhealthy",
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if the service is ready to receive traffic.",
)
async def readiness_check(database: DatabaseDep) -> dict:
    """Kubernetes readiness probe endpoint."""
    return {"ready": await database.ping()}


@router.get(
    "/live",
    summary="Liveness check",
    description="Check if the service is alive.",
)
async def liveness_check() -> dict:
    """Kubernetes liveness probe endpoint."""
    return {"alive": True}


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics.",
)
async def metrics() -> Response:
    """Expose Prometheus metrics."""
    metrics_collector = get_metrics()
    return Response(
        content=metrics_collector.get_metrics(),
        media_type=metrics_collector.get_content_type(),
    )
