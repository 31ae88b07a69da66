"""
Job submission routes.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from jobqueue.api.dependencies import get_job_store
from jobqueue.constants import API_V1_PREFIX
from jobqueue.errors import NotFoundError, QueueError
from jobqueue.observability.metrics import get_metrics
from jobqueue.queue import JobStore
from jobqueue.types.api import ErrorResponse, JobResponse, PushJobRequest, PushJobResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_V1_PREFIX}/jobs", tags=["Jobs"])


@router.post(
    "",
    response_model=PushJobResponse,
    status_code=status.HTTP_201_CREATED,
    responses={503: {"model": ErrorResponse}},
    summary="Submit a job",
    description="Push a new job onto the queue.",
)
async def push_job(
    request: PushJobRequest,
    store: JobStore = Depends(get_job_store),
) -> PushJobResponse:
    """
    Push a job.

    Args:
        request: Message and optional schedule.
        store: The shared job store.

    Returns:
        PushJobResponse with the new job id.
    """
    try:
        job_id = await store.push(request.message, request.scheduled_for)
    except QueueError as e:
        logger.error(f"Pushing job: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job store unavailable",
        ) from e

    get_metrics().record_job_pushed(request.message.kind)
    return PushJobResponse(id=job_id)


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Get job details",
)
async def get_job(
    job_id: UUID,
    store: JobStore = Depends(get_job_store),
) -> JobResponse:
    """Get a queued or running job. Completed jobs are gone and return 404."""
    try:
        job = await store.get(job_id)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        ) from e
    except QueueError as e:
        logger.error(f"Loading job: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job store unavailable",
        ) from e

    return JobResponse.from_job(job)
