"""
Health check routes.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from jobqueue import __version__
from jobqueue.api.dependencies import get_job_store
from jobqueue.errors import QueueError
from jobqueue.observability.metrics import get_metrics
from jobqueue.queue import JobStore
from jobqueue.types.api import HealthResponse

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health of the API and the job store.",
)
async def health_check(
    store: JobStore = Depends(get_job_store),
) -> HealthResponse:
    """
    Perform a health check.

    Args:
        store: The shared job store.

    Returns:
        HealthResponse with service status.
    """
    db_status = "healthy"
    try:
        await store.count_by_status()
    except QueueError:
        db_status = "unhealthy"

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        version=__version__,
        database=db_status,
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if the service is ready to receive traffic.",
)
async def readiness_check(
    store: JobStore = Depends(get_job_store),
) -> dict:
    """Kubernetes readiness probe endpoint."""
    try:
        await store.count_by_status()
        return {"ready": True}
    except QueueError:
        return {"ready": False}


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
async def metrics(
    store: JobStore = Depends(get_job_store),
) -> Response:
    """
    Expose Prometheus metrics, refreshing queue depth first.

    Returns:
        Prometheus-formatted metrics.
    """
    metrics_collector = get_metrics()
    try:
        metrics_collector.update_queue_depth(await store.count_by_status())
    except QueueError:
        # Serve the last known depth
        pass

    return Response(
        content=metrics_collector.get_metrics(),
        media_type=metrics_collector.get_content_type(),
    )
