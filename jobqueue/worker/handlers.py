"""
Job handlers registry and implementations.

Handlers are looked up by the message's `kind`. A claimed job may run again
after a failure or a lease reclaim, so handlers should be idempotent.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

from jobqueue.types.job import JobContext, JobResult

logger = logging.getLogger(__name__)

# Type alias for job handler functions
JobHandler = Callable[[JobContext], Awaitable[JobResult]]

# Handler registry
_handlers: dict[str, JobHandler] = {}


def register_handler(kind: str) -> Callable[[JobHandler], JobHandler]:
    """
    Decorator to register a handler for a message kind.

    Args:
        kind: The message kind this handler processes.

    Returns:
        Decorator function.

    Example:
        @register_handler("detail")
        async def handle_detail(context: JobContext) -> JobResult:
            ...
    """
    def decorator(handler: JobHandler) -> JobHandler:
        _handlers[kind] = handler
        logger.debug(f"Registered handler for message kind: {kind}")
        return handler
    return decorator


def get_handler(kind: str) -> JobHandler | None:
    """Get the handler for a message kind, or None if not registered."""
    return _handlers.get(kind)


def list_handlers() -> list[str]:
    """List all registered message kinds."""
    return list(_handlers.keys())


# ============================================================================
# Built-in job handlers
# ============================================================================


@register_handler("detail")
async def handle_detail(context: JobContext) -> JobResult:
    """Log the detail item and succeed."""
    message = context.message

    logger.info(
        "Job message",
        extra={"job_id": str(context.job_id), "item": message.item, "attempt": context.attempt}
    )

    return JobResult(
        success=True,
        output={"item": message.item},
    )


@register_handler("sleep")
async def handle_sleep(context: JobContext) -> JobResult:
    """
    Sleep for the requested duration.

    Long sleeps outlive a lease unless the worker heartbeat extends it.
    """
    message = context.message

    logger.info(
        "Sleep job starting",
        extra={"job_id": str(context.job_id), "duration": message.duration_seconds}
    )

    await asyncio.sleep(message.duration_seconds)

    return JobResult(
        success=True,
        output={"slept_for": message.duration_seconds},
    )


async def execute_job(context: JobContext) -> JobResult:
    """
    Execute a job using the handler registered for its message kind.

    Never raises: a missing handler or a handler exception becomes a failed
    JobResult.

    Args:
        context: The job context.

    Returns:
        JobResult from the handler, with duration_ms filled in.
    """
    kind = context.message.kind
    handler = get_handler(kind)

    if handler is None:
        logger.error(
            f"No handler for message kind: {kind}",
            extra={"job_id": str(context.job_id)}
        )
        return JobResult(
            success=False,
            error=f"No handler registered for message kind: {kind}",
        )

    start = time.perf_counter()
    try:
        result = await handler(context)
    except Exception as e:
        logger.exception(
            "Handler raised exception",
            extra={"job_id": str(context.job_id), "error": str(e)}
        )
        result = JobResult(
            success=False,
            error=f"Handler exception: {str(e)}",
        )

    if result.duration_ms is None:
        result.duration_ms = (time.perf_counter() - start) * 1000
    return result
