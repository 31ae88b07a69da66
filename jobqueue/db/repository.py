"""
Relational job stores.
Implements the core data access patterns for the queue table.
"""

import logging
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

from sqlalchemy import ColumnElement, and_, delete, func, insert, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from ulid import ULID

from jobqueue.config import Settings, get_settings
from jobqueue.constants import (
    DEFAULT_LEASE_DURATION_SECONDS,
    DEFAULT_MAX_FAILED_ATTEMPTS,
    MAX_CLAIM_BATCH,
    QUEUE_TABLE,
    JobStatus,
)
from jobqueue.db.models import JobRecord
from jobqueue.errors import translate_errors
from jobqueue.queue import JobStore
from jobqueue.types.job import Job, Message, dump_message

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalize to aware UTC; naive datetimes are taken to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_job_id() -> UUID:
    """Generate a unique, time-sortable job id."""
    return ULID().to_uuid()


def clamp_batch_size(requested: int) -> int:
    """Cap a claim request at MAX_CLAIM_BATCH; non-positive requests claim nothing."""
    return max(0, min(requested, MAX_CLAIM_BATCH))


class SqlJobStore(JobStore):
    """
    Job store backed by a relational database through SQLAlchemy.

    Every operation runs in its own short transaction, so the instance can be
    shared by any number of concurrent workers. Subclasses provide `claim`.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_failed_attempts: int = DEFAULT_MAX_FAILED_ATTEMPTS,
        lease_duration_seconds: float = DEFAULT_LEASE_DURATION_SECONDS,
        clock: Clock = utcnow,
    ):
        """
        Initialize the store.

        Args:
            session_factory: Factory for async sessions bound to the queue database.
            max_failed_attempts: Jobs with this many failures are never claimed again.
            lease_duration_seconds: How long a claim holds a job before it may be reclaimed.
            clock: Source of the current time.
        """
        self._session_factory = session_factory
        self.max_failed_attempts = max_failed_attempts
        self.lease_duration = timedelta(seconds=lease_duration_seconds)
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
    ) -> "SqlJobStore":
        settings = settings or get_settings()
        return cls(
            session_factory,
            max_failed_attempts=settings.max_failed_attempts,
            lease_duration_seconds=settings.worker_lease_duration_seconds,
        )

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        with translate_errors(operation):
            async with self._session_factory() as session:
                async with session.begin():
                    yield session

    def _held_by(self, job_id: UUID, token: UUID | None) -> ColumnElement[bool]:
        if token is None:
            return JobRecord.id == job_id
        return and_(JobRecord.id == job_id, JobRecord.claim_token == token)

    def _eligible(self, now: datetime) -> ColumnElement[bool]:
        return and_(
            JobRecord.status == JobStatus.QUEUED,
            JobRecord.scheduled_for <= now,
            JobRecord.failed_attempts < self.max_failed_attempts,
        )

    async def push(
        self,
        message: Message,
        scheduled_for: datetime | None = None,
    ) -> UUID:
        now = self._clock()
        job_id = new_job_id()
        if scheduled_for is not None:
            scheduled_for = to_utc(scheduled_for)
        stmt = insert(JobRecord).values(
            id=job_id,
            created_at=now,
            updated_at=now,
            scheduled_for=scheduled_for or now,
            failed_attempts=0,
            status=JobStatus.QUEUED,
            message=dump_message(message),
        )

        async with self._transaction("push") as session:
            await session.execute(stmt)

        logger.info(
            "Pushed job",
            extra={"job_id": str(job_id), "kind": message.kind}
        )
        return job_id

    async def complete(self, job_id: UUID, token: UUID | None = None) -> None:
        stmt = delete(JobRecord).where(self._held_by(job_id, token))

        async with self._transaction("complete") as session:
            result = await session.execute(stmt)
            deleted = result.rowcount

        if deleted == 0:
            logger.debug(
                "Complete matched no job held by this claim",
                extra={"job_id": str(job_id), "token": str(token)}
            )

    async def fail(self, job_id: UUID, token: UUID | None = None) -> None:
        stmt = (
            update(JobRecord)
            .where(self._held_by(job_id, token))
            .values(
                status=JobStatus.QUEUED,
                failed_attempts=JobRecord.failed_attempts + 1,
                updated_at=self._clock(),
                lease_expires_at=None,
                claim_token=None,
            )
            .execution_options(synchronize_session=False)
        )

        async with self._transaction("fail") as session:
            result = await session.execute(stmt)
            updated = result.rowcount

        if updated == 0:
            logger.debug(
                "Fail matched no job held by this claim",
                extra={"job_id": str(job_id), "token": str(token)}
            )

    async def clear(self) -> None:
        async with self._transaction("clear") as session:
            result = await session.execute(delete(JobRecord))
            deleted = result.rowcount

        logger.info(f"Cleared {deleted} jobs")

    async def get(self, job_id: UUID) -> Job:
        stmt = select(JobRecord).where(JobRecord.id == job_id)

        async with self._transaction("get") as session:
            result = await session.execute(stmt)
            return Job.model_validate(result.scalar_one())

    async def count_by_status(self) -> dict[JobStatus, int]:
        stmt = select(JobRecord.status, func.count()).group_by(JobRecord.status)

        async with self._transaction("count_by_status") as session:
            result = await session.execute(stmt)
            rows = result.all()

        counts = {status: 0 for status in JobStatus}
        for status, count in rows:
            counts[JobStatus(status)] = count
        return counts

    async def extend_leases(self, job_ids: Iterable[UUID]) -> int:
        ids = list(job_ids)
        if not ids:
            return 0

        stmt = (
            update(JobRecord)
            .where(
                and_(
                    JobRecord.id.in_(ids),
                    JobRecord.status == JobStatus.RUNNING,
                )
            )
            .values(lease_expires_at=self._clock() + self.lease_duration)
            .execution_options(synchronize_session=False)
        )

        async with self._transaction("extend_leases") as session:
            result = await session.execute(stmt)
            return result.rowcount

    async def reclaim_expired(self) -> int:
        now = self._clock()
        stmt = (
            update(JobRecord)
            .where(
                and_(
                    JobRecord.status == JobStatus.RUNNING,
                    JobRecord.lease_expires_at < now,
                )
            )
            .values(
                status=JobStatus.QUEUED,
                failed_attempts=JobRecord.failed_attempts + 1,
                lease_expires_at=None,
                claim_token=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )

        async with self._transaction("reclaim_expired") as session:
            result = await session.execute(stmt)
            count = result.rowcount

        if count > 0:
            logger.warning(f"Reclaimed {count} jobs with expired leases")
        return count


class PostgresJobStore(SqlJobStore):
    """
    PostgreSQL store claiming with FOR UPDATE SKIP LOCKED.

    Selection, row locking and the status update happen in one statement.
    Rows locked by another in-flight claim are skipped rather than waited on,
    so concurrent claimers partition the eligible set.
    """

    _CLAIM_SQL = text(f"""
        UPDATE {QUEUE_TABLE}
        SET
            status = :running_status,
            updated_at = :now,
            lease_expires_at = :lease_expires_at,
            claim_token = :claim_token
        WHERE id IN (
            SELECT id FROM {QUEUE_TABLE}
            WHERE status = :queued_status
            AND scheduled_for <= :now
            AND failed_attempts < :max_failed_attempts
            ORDER BY scheduled_for
            FOR UPDATE SKIP LOCKED
            LIMIT :batch_size
        )
        RETURNING *
    """)

    async def claim(self, max_count: int) -> list[Job]:
        batch_size = clamp_batch_size(max_count)
        if batch_size == 0:
            return []

        now = self._clock()
        params = {
            "running_status": JobStatus.RUNNING.value,
            "queued_status": JobStatus.QUEUED.value,
            "now": now,
            "lease_expires_at": now + self.lease_duration,
            "claim_token": uuid4(),
            "max_failed_attempts": self.max_failed_attempts,
            "batch_size": batch_size,
        }

        async with self._transaction("claim") as session:
            result = await session.execute(
                select(JobRecord).from_statement(self._CLAIM_SQL),
                params,
            )
            jobs = [Job.model_validate(record) for record in result.scalars().all()]

        # RETURNING order is unspecified
        jobs.sort(key=lambda job: (job.scheduled_for, job.id))

        if jobs:
            logger.info(
                f"Claimed {len(jobs)} jobs",
                extra={"job_count": len(jobs), "requested": max_count}
            )
        return jobs


class CompareAndSwapJobStore(SqlJobStore):
    """
    Portable store for databases without SKIP LOCKED (e.g. SQLite).

    Candidates are read in eligibility order, then each is won with a
    conditional update that only succeeds while the row is still QUEUED.
    Candidates lost to another claimer are replaced by re-reading, for at
    most `max_rounds` rounds.
    """

    max_rounds = 5

    async def _try_claim_one(
        self,
        job_id: UUID,
        now: datetime,
        token: UUID,
    ) -> Job | None:
        stmt = (
            update(JobRecord)
            .where(and_(JobRecord.id == job_id, self._eligible(now)))
            .values(
                status=JobStatus.RUNNING,
                updated_at=now,
                lease_expires_at=now + self.lease_duration,
                claim_token=token,
            )
            .returning(JobRecord)
            .execution_options(synchronize_session=False)
        )

        async with self._transaction("claim") as session:
            result = await session.execute(stmt)
            record = result.scalar_one_or_none()
            return Job.model_validate(record) if record is not None else None

    async def claim(self, max_count: int) -> list[Job]:
        batch_size = clamp_batch_size(max_count)
        token = uuid4()
        claimed: list[Job] = []

        for _ in range(self.max_rounds):
            wanted = batch_size - len(claimed)
            if wanted <= 0:
                break

            now = self._clock()
            candidates_stmt = (
                select(JobRecord.id)
                .where(self._eligible(now))
                .order_by(JobRecord.scheduled_for, JobRecord.id)
                .limit(wanted)
            )
            async with self._transaction("claim") as session:
                result = await session.execute(candidates_stmt)
                candidates = result.scalars().all()

            if not candidates:
                break

            lost = 0
            for job_id in candidates:
                job = await self._try_claim_one(job_id, now, token)
                if job is None:
                    lost += 1
                else:
                    claimed.append(job)

            if lost == 0:
                break

        claimed.sort(key=lambda job: (job.scheduled_for, job.id))

        if claimed:
            logger.info(
                f"Claimed {len(claimed)} jobs",
                extra={"job_count": len(claimed), "requested": max_count}
            )
        return claimed


def create_job_store(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings | None = None,
) -> SqlJobStore:
    """
    Build the store best suited to the session factory's database.

    PostgreSQL gets the SKIP LOCKED store; anything else gets compare-and-swap.
    """
    bind = session_factory.kw.get("bind")
    dialect = bind.dialect.name if bind is not None else ""
    store_cls = PostgresJobStore if dialect == "postgresql" else CompareAndSwapJobStore
    return store_cls.from_settings(session_factory, settings)
