"""
FastAPI dependencies.
"""

from fastapi import Request

from jobqueue.queue import JobStore


def get_job_store(request: Request) -> JobStore:
    """
    Return the shared job store created during application startup.

    Raises:
        RuntimeError: If the application has not been started.
    """
    store = getattr(request.app.state, "job_store", None)
    if store is None:
        raise RuntimeError("Job store not initialized. Start the app with its lifespan.")
    return store
