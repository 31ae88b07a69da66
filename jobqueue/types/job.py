"""
Job-related type definitions for internal use.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from jobqueue.constants import JobStatus


class DetailMessage(BaseModel):
    """Message carrying an opaque item string."""

    kind: Literal["detail"] = "detail"
    item: str


class SleepMessage(BaseModel):
    """Message asking the worker to wait, used for long-running work."""

    kind: Literal["sleep"] = "sleep"
    duration_seconds: float = Field(default=1.0, ge=0)


# Tagged union of every message shape. Add new variants here with a distinct `kind`.
Message = Annotated[DetailMessage | SleepMessage, Field(discriminator="kind")]

_message_adapter: TypeAdapter[Message] = TypeAdapter(Message)


def parse_message(data: Any) -> Message:
    """
    Validate raw data (usually decoded JSON) into a Message variant.

    Raises:
        pydantic.ValidationError: If the data matches no variant.
    """
    return _message_adapter.validate_python(data)


def dump_message(message: Message) -> dict[str, Any]:
    """Serialize a message for storage, always including its `kind` tag."""
    return message.model_dump(mode="json")


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Job(BaseModel):
    """
    A unit of work as seen by producers and workers.

    Built from a database row via `Job.model_validate(record)`.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
    updated_at: datetime
    scheduled_for: datetime
    failed_attempts: int
    status: JobStatus
    message: Message
    lease_expires_at: datetime | None = None
    claim_token: UUID | None = None

    @field_validator("created_at", "updated_at", "scheduled_for", "lease_expires_at")
    @classmethod
    def _ensure_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class JobResult(BaseModel):
    """
    Result of job execution.
    Returned by job handlers after processing.
    """

    success: bool
    output: dict[str, Any] | None = None
    error: str | None = None
    duration_ms: float | None = None


@dataclass
class JobContext:
    """
    Context passed to job handlers during execution.
    Contains the claimed job and retry bookkeeping for the handler.
    """

    job: Job
    worker_id: str
    max_failed_attempts: int

    @property
    def job_id(self) -> UUID:
        return self.job.id

    @property
    def message(self) -> Message:
        return self.job.message

    @property
    def attempt(self) -> int:
        """1-based number of the current attempt."""
        return self.job.failed_attempts + 1

    @property
    def is_last_attempt(self) -> bool:
        """Check if a failure now would exhaust the job's attempts."""
        return self.attempt >= self.max_failed_attempts

    @property
    def remaining_attempts(self) -> int:
        """Get remaining retry attempts after this one."""
        return max(0, self.max_failed_attempts - self.attempt)
