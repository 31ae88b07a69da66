"""
Type definitions for the job queue.
Contains input/output type definitions for all functions, grouped by module.
"""

from jobqueue.types.api import (
    ErrorResponse,
    HealthResponse,
    JobResponse,
    PushJobRequest,
    PushJobResponse,
)
from jobqueue.types.job import (
    DetailMessage,
    Job,
    JobContext,
    JobResult,
    Message,
    SleepMessage,
    dump_message,
    parse_message,
)

__all__ = [
    # API types
    "PushJobRequest",
    "PushJobResponse",
    "JobResponse",
    "HealthResponse",
    "ErrorResponse",
    # Job types
    "Job",
    "JobContext",
    "JobResult",
    "Message",
    "DetailMessage",
    "SleepMessage",
    "parse_message",
    "dump_message",
]
