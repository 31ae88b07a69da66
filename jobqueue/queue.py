"""
Job store interface.

Every store operation raises a `jobqueue.errors.QueueError` subclass on
failure. A single store instance is meant to be shared by every worker,
reaper and API handler in a process.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from jobqueue.constants import DEFAULT_MAX_FAILED_ATTEMPTS, JobStatus
from jobqueue.types.job import Job, Message


class JobStore(ABC):
    """Durable queue of jobs with an atomic, mutually exclusive claim."""

    # Jobs with this many failed attempts are never claimed again
    max_failed_attempts: int = DEFAULT_MAX_FAILED_ATTEMPTS

    @abstractmethod
    async def push(
        self,
        message: Message,
        scheduled_for: datetime | None = None,
    ) -> UUID:
        """
        Insert a new QUEUED job.

        Args:
            message: The job message.
            scheduled_for: Earliest time the job may be claimed. Defaults to now.

        Returns:
            The new job's id.
        """

    @abstractmethod
    async def claim(self, max_count: int) -> list[Job]:
        """
        Atomically claim up to `max_count` eligible jobs and mark them RUNNING.

        Jobs are returned oldest `scheduled_for` first. Concurrent callers
        never receive the same job. Each claim stamps a fresh `claim_token`
        on the jobs it returns. Returns an empty list when nothing is eligible.
        """

    @abstractmethod
    async def complete(self, job_id: UUID, token: UUID | None = None) -> None:
        """
        Remove a job. Unknown ids are ignored.

        Args:
            job_id: The job to remove.
            token: The `claim_token` of the claim being acknowledged. When
                given, the job is only removed while that claim still holds it.
        """

    @abstractmethod
    async def fail(self, job_id: UUID, token: UUID | None = None) -> None:
        """
        Requeue a job and increment its failed attempts. Unknown ids are ignored.

        Args:
            job_id: The job to requeue.
            token: As for `complete`.
        """

    @abstractmethod
    async def clear(self) -> None:
        """Remove all jobs."""

    @abstractmethod
    async def get(self, job_id: UUID) -> Job:
        """
        Load a single job.

        Raises:
            NotFoundError: If no job has this id.
        """

    @abstractmethod
    async def count_by_status(self) -> dict[JobStatus, int]:
        """Count stored jobs per status."""

    @abstractmethod
    async def extend_leases(self, job_ids: Iterable[UUID]) -> int:
        """
        Push back the lease expiry of RUNNING jobs (worker heartbeat).

        Returns:
            Number of leases extended.
        """

    @abstractmethod
    async def reclaim_expired(self) -> int:
        """
        Requeue RUNNING jobs whose lease has expired, counting a failed attempt.

        Returns:
            Number of jobs reclaimed.
        """
