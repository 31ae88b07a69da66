"""
Integration tests for worker functionality against real stores.
"""

import pytest

from jobqueue.constants import JobStatus
from jobqueue.db import SqlJobStore
from jobqueue.reaper.main import Reaper
from jobqueue.types.job import DetailMessage, JobContext, JobResult, SleepMessage
from jobqueue.worker.main import Worker


class TestWorkerIntegration:
    """Integration tests for worker job processing."""

    @pytest.mark.asyncio
    async def test_full_job_lifecycle(self, store: SqlJobStore, clock):
        """Test push -> claim -> complete, then nothing left to claim."""
        job_id = await store.push(DetailMessage(item="A"), clock.now)

        clock.advance(seconds=1)
        jobs = await store.claim(5)
        assert len(jobs) == 1
        assert jobs[0].id == job_id
        assert jobs[0].status == JobStatus.RUNNING
        assert jobs[0].message == DetailMessage(item="A")

        await store.complete(job_id)

        clock.advance(seconds=1)
        assert await store.claim(5) == []

    @pytest.mark.asyncio
    async def test_worker_runs_builtin_handlers(
        self,
        store: SqlJobStore,
        test_settings,
        registry_metrics,
    ):
        """Test that the worker executes and completes every claimed job."""
        await store.push(DetailMessage(item="A"))
        await store.push(DetailMessage(item="B"))
        await store.push(SleepMessage(duration_seconds=0))

        worker = Worker(store, settings=test_settings, metrics=registry_metrics)
        processed = await worker.run_once()

        assert processed == 3
        counts = await store.count_by_status()
        assert sum(counts.values()) == 0

    @pytest.mark.asyncio
    async def test_worker_retries_until_exhausted(
        self,
        store: SqlJobStore,
        test_settings,
        registry_metrics,
    ):
        """Test that a job failing every time is tried three times and kept."""
        attempts: list[int] = []

        async def always_fail(context: JobContext) -> JobResult:
            attempts.append(context.attempt)
            return JobResult(success=False, error="downstream unavailable")

        job_id = await store.push(DetailMessage(item="A"))
        worker = Worker(
            store,
            handler=always_fail,
            settings=test_settings,
            metrics=registry_metrics,
        )

        for _ in range(5):
            await worker.run_once()

        assert attempts == [1, 2, 3]
        job = await store.get(job_id)
        assert job.failed_attempts == 3
        assert job.status == JobStatus.QUEUED

    @pytest.mark.asyncio
    async def test_worker_recovers_after_failure(
        self,
        store: SqlJobStore,
        test_settings,
        registry_metrics,
    ):
        """Test that a job failing once succeeds on its retry."""
        calls = 0

        async def flaky(context: JobContext) -> JobResult:
            nonlocal calls
            calls += 1
            return JobResult(success=context.attempt > 1)

        job_id = await store.push(DetailMessage(item="A"))
        worker = Worker(store, handler=flaky, settings=test_settings, metrics=registry_metrics)

        await worker.run_once()
        assert (await store.get(job_id)).failed_attempts == 1

        await worker.run_once()
        assert calls == 2
        assert (await store.count_by_status())[JobStatus.QUEUED] == 0


class TestReaperIntegration:
    """Integration tests for lease recovery."""

    @pytest.mark.asyncio
    async def test_reaper_recovers_abandoned_job(
        self,
        store: SqlJobStore,
        clock,
        registry_metrics,
        metrics_registry,
    ):
        """Test that a job claimed by a dead worker is requeued after its lease."""
        job_id = await store.push(DetailMessage(item="A"))
        await store.claim(1)

        reaper = Reaper(store, interval_seconds=0.01, metrics=registry_metrics)
        assert await reaper.run_once() == 0

        clock.advance(seconds=31)
        assert await reaper.run_once() == 1
        assert metrics_registry.get_sample_value("leases_reclaimed_total") == 1

        [job] = await store.claim(1)
        assert job.id == job_id
        assert job.failed_attempts == 1
