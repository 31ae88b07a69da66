"""
API request and response type definitions.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from jobqueue.constants import JobStatus
from jobqueue.types.job import Job, Message


class PushJobRequest(BaseModel):
    """Request body for submitting a job."""

    message: Message = Field(..., description="Job message, tagged by `kind`")
    scheduled_for: datetime | None = Field(
        default=None, description="Earliest time the job may run; defaults to now"
    )


class PushJobResponse(BaseModel):
    """Response body after submitting a job."""

    id: UUID
    message: str = "Job queued successfully"


class JobResponse(BaseModel):
    """Full job details response."""

    id: UUID
    status: JobStatus
    failed_attempts: int
    message: Message
    scheduled_for: datetime
    created_at: datetime
    updated_at: datetime
    lease_expires_at: datetime | None

    @classmethod
    def from_job(cls, job: Job) -> "JobResponse":
        return cls(
            id=job.id,
            status=job.status,
            failed_attempts=job.failed_attempts,
            message=job.message,
            scheduled_for=job.scheduled_for,
            created_at=job.created_at,
            updated_at=job.updated_at,
            lease_expires_at=job.lease_expires_at,
        )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Error response body."""

    detail: str
