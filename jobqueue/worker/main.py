"""
Worker process for executing jobs.

The worker claims batches of jobs from the store, runs them under a
concurrency cap, and acknowledges each one as completed or failed.
"""

import asyncio
import logging
import os
import signal
import time
from uuid import UUID

from jobqueue.config import Settings, get_settings
from jobqueue.constants import SPAN_ACK_JOB, SPAN_CLAIM_JOBS, SPAN_EXECUTE_JOB
from jobqueue.db import close_db, create_job_store, get_engine, init_db
from jobqueue.db.migrate import run_migrations
from jobqueue.errors import QueueError
from jobqueue.observability.logging import bind_context, clear_context, setup_logging
from jobqueue.observability.metrics import MetricsCollector, get_metrics
from jobqueue.observability.tracing import get_tracer, instrument_sqlalchemy, setup_tracing
from jobqueue.queue import JobStore
from jobqueue.types.job import Job, JobContext, JobResult
from jobqueue.worker.handlers import JobHandler, execute_job

logger = logging.getLogger(__name__)


class Worker:
    """
    Job worker that polls for and executes jobs.

    Features:
    - Claims up to `concurrency` jobs per poll through the shared JobStore
    - Runs at most `concurrency` handlers at once
    - Backs off after claim errors and on an idle queue
    - Heartbeat to extend leases for long-running jobs
    - Graceful shutdown on SIGTERM/SIGINT once the current batch finishes
    """

    def __init__(
        self,
        store: JobStore,
        handler: JobHandler = execute_job,
        worker_id: str | None = None,
        concurrency: int | None = None,
        settings: Settings | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the worker.

        Args:
            store: The job store, shared with any other workers in the process.
            handler: Coroutine run for each claimed job.
            worker_id: Unique worker identifier. Defaults to hostname + PID.
            concurrency: Batch size and handler concurrency cap.
            settings: Tunables; defaults to the environment settings.
            metrics: Metrics collector; defaults to the process-wide one.
        """
        settings = settings or get_settings()

        self.store = store
        self.handler = handler
        self.worker_id = (
            worker_id
            or settings.worker_id
            or f"{os.uname().nodename}-{os.getpid()}"
        )
        self.concurrency = concurrency or settings.worker_concurrency
        # Must match the threshold the store claims with
        self.max_failed_attempts = store.max_failed_attempts
        self.idle_interval = settings.worker_idle_interval_seconds
        self.error_backoff = settings.worker_error_backoff_seconds
        self.batch_pause = settings.worker_batch_pause_seconds
        self.heartbeat_interval = settings.worker_heartbeat_interval_seconds

        self._running = False
        self._semaphore = asyncio.Semaphore(self.concurrency)
        self._in_flight: set[UUID] = set()
        self._heartbeat_task: asyncio.Task | None = None
        self._metrics = metrics or get_metrics()

    @property
    def in_flight(self) -> frozenset[UUID]:
        """Ids of jobs currently being handled."""
        return frozenset(self._in_flight)

    async def start(self) -> None:
        """Run the poll loop until stop() is called."""
        logger.info(
            "Worker starting",
            extra={"worker_id": self.worker_id, "concurrency": self.concurrency}
        )

        self._running = True
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

        while self._running:
            try:
                jobs = await self._claim()

                if jobs is None:
                    # Claim failed and already backed off
                    pass
                elif not jobs:
                    await asyncio.sleep(self.idle_interval)
                else:
                    await self._dispatch(jobs)

            except Exception as e:
                logger.exception(
                    f"Error in worker loop: {e}",
                    extra={"worker_id": self.worker_id}
                )

            # Bound the poll rate against the store
            await asyncio.sleep(self.batch_pause)

        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass

        logger.info("Worker stopped", extra={"worker_id": self.worker_id})

    async def stop(self) -> None:
        """Stop the worker after the current batch."""
        logger.info("Worker stopping", extra={"worker_id": self.worker_id})
        self._running = False

    async def run_once(self) -> int:
        """
        Claim one batch and process it to completion.

        Returns:
            Number of jobs processed.
        """
        jobs = await self._claim()
        if not jobs:
            return 0

        await self._dispatch(jobs)
        return len(jobs)

    async def _claim(self) -> list[Job] | None:
        """
        Claim a batch of jobs.

        Returns:
            The claimed jobs, or None if the store raised (after backing off).
        """
        with get_tracer().start_as_current_span(SPAN_CLAIM_JOBS) as span:
            span.set_attribute("worker_id", self.worker_id)
            try:
                jobs = await self.store.claim(self.concurrency)
            except QueueError as e:
                logger.error(
                    f"Worker is claiming jobs: {e}",
                    extra={"worker_id": self.worker_id}
                )
                self._metrics.record_claim_error(self.worker_id)
                await asyncio.sleep(self.error_backoff)
                return None

            span.set_attribute("job_count", len(jobs))

        if jobs:
            self._metrics.record_jobs_claimed(self.worker_id, len(jobs))
            logger.info(
                f"Claimed {len(jobs)} jobs",
                extra={"worker_id": self.worker_id}
            )
        return jobs

    async def _dispatch(self, jobs: list[Job]) -> None:
        """Run every job in the batch, at most `concurrency` at a time."""
        results = await asyncio.gather(
            *(self._process(job) for job in jobs),
            return_exceptions=True,
        )

        for job, outcome in zip(jobs, results):
            if isinstance(outcome, BaseException):
                logger.error(
                    f"Unexpected error processing job: {outcome}",
                    extra={"job_id": str(job.id), "worker_id": self.worker_id}
                )

    async def _process(self, job: Job) -> None:
        async with self._semaphore:
            self._in_flight.add(job.id)
            try:
                start_time = time.perf_counter()
                result = await self._execute(job)
                duration = time.perf_counter() - start_time
                await self._acknowledge(job, result, duration)
            finally:
                self._in_flight.discard(job.id)

    async def _execute(self, job: Job) -> JobResult:
        """Run the handler; a raised exception counts as a failure."""
        context = JobContext(
            job=job,
            worker_id=self.worker_id,
            max_failed_attempts=self.max_failed_attempts,
        )

        with get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span:
            span.set_attribute("job_id", str(job.id))
            span.set_attribute("kind", job.message.kind)
            span.set_attribute("attempt", context.attempt)

            try:
                result = await self.handler(context)
            except Exception as e:
                logger.exception(
                    "Exception executing job",
                    extra={"job_id": str(job.id), "error": str(e)}
                )
                result = JobResult(success=False, error=f"Worker exception: {str(e)}")

            span.set_attribute("success", result.success)

        if not result.success:
            logger.warning(
                f"Handling job({job.id}): {result.error}",
                extra={"job_id": str(job.id), "attempt": context.attempt}
            )
        return result

    async def _acknowledge(self, job: Job, result: JobResult, duration: float) -> None:
        """
        Complete or fail the job in the store.

        An acknowledgement error is logged and not retried; the job stays
        RUNNING until its lease expires and the reaper requeues it. The
        claim token makes an acknowledgement that arrives after such a
        reclaim a no-op.
        """
        outcome = "completed" if result.success else "failed"

        with get_tracer().start_as_current_span(SPAN_ACK_JOB) as span:
            span.set_attribute("job_id", str(job.id))
            span.set_attribute("outcome", outcome)
            try:
                if result.success:
                    await self.store.complete(job.id, token=job.claim_token)
                else:
                    await self.store.fail(job.id, token=job.claim_token)
            except QueueError as e:
                logger.error(
                    f"Completing / failing job: {e}",
                    extra={"job_id": str(job.id), "worker_id": self.worker_id}
                )
                self._metrics.record_ack_error(self.worker_id)
                return

        self._metrics.record_job_acked(
            kind=job.message.kind,
            outcome=outcome,
            duration_seconds=duration,
        )

    async def _heartbeat_loop(self) -> None:
        """
        Periodically extend leases on in-flight jobs.

        This prevents jobs from being reclaimed by the reaper
        while they're still being executed.
        """
        while self._running:
            try:
                await asyncio.sleep(self.heartbeat_interval)

                if not self._in_flight:
                    continue

                extended = await self.store.extend_leases(list(self._in_flight))
                logger.debug(
                    f"Extended {extended} leases",
                    extra={"worker_id": self.worker_id}
                )

            except asyncio.CancelledError:
                break
            except QueueError as e:
                logger.error(f"Error in heartbeat loop: {e}")


async def run_async() -> None:
    """Bootstrap the store and run a worker until signalled."""
    settings = get_settings()
    setup_logging(settings)
    setup_tracing()

    session_factory = await init_db()
    instrument_sqlalchemy(get_engine().sync_engine)

    if settings.worker_run_migrations:
        await run_migrations(settings.database_sync_url)

    store = create_job_store(session_factory, settings)
    worker = Worker(store, settings=settings)
    bind_context(worker_id=worker.worker_id)

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(worker.stop())
        )

    try:
        await worker.start()
    finally:
        clear_context()
        await close_db()


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
