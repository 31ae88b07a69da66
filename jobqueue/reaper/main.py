"""
Lease reaper for recovering jobs stuck in RUNNING.

A worker that crashes or hangs stops heartbeating, so its claimed jobs'
leases run out. The reaper periodically requeues those jobs, counting the
lost run as a failed attempt.
"""

import asyncio
import logging
import signal

from jobqueue.config import get_settings
from jobqueue.db import close_db, create_job_store, init_db
from jobqueue.errors import QueueError
from jobqueue.observability.logging import setup_logging
from jobqueue.observability.metrics import MetricsCollector, get_metrics
from jobqueue.queue import JobStore

logger = logging.getLogger(__name__)


class Reaper:
    """
    Lease reaper that recovers expired job leases.

    Runs periodically to:
    1. Find jobs in RUNNING status with an expired lease_expires_at
    2. Return them to QUEUED status with one more failed attempt
    3. Record metrics for monitoring
    """

    def __init__(
        self,
        store: JobStore,
        interval_seconds: float | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the reaper.

        Args:
            store: The shared job store.
            interval_seconds: Seconds between reaper runs.
            metrics: Metrics collector; defaults to the process-wide one.
        """
        settings = get_settings()
        self.store = store
        self.interval = interval_seconds or settings.reaper_interval_seconds
        self._running = False
        self._metrics = metrics or get_metrics()

    async def start(self) -> None:
        """Start the reaper loop."""
        logger.info(f"Reaper starting with interval {self.interval}s")
        self._running = True

        while self._running:
            try:
                await self.run_once()
            except QueueError as e:
                logger.error(f"Error in reaper loop: {e}")

            await asyncio.sleep(self.interval)

        logger.info("Reaper stopped")

    async def stop(self) -> None:
        """Stop the reaper."""
        logger.info("Reaper stopping")
        self._running = False

    async def run_once(self) -> int:
        """
        Run the reaper once (for testing or cron-style execution).

        Returns:
            Number of jobs recovered.
        """
        count = await self.store.reclaim_expired()

        if count > 0:
            self._metrics.record_leases_reclaimed(count)
            logger.info(f"Recovered {count} expired leases")

        return count


async def run_async() -> None:
    """Run the reaper asynchronously."""
    settings = get_settings()
    setup_logging(settings)
    session_factory = await init_db()

    reaper = Reaper(create_job_store(session_factory, settings))

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(reaper.stop())
        )

    try:
        await reaper.start()
    finally:
        await close_db()


def run() -> None:
    """Run the reaper."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
