"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import IntEnum


class JobStatus(IntEnum):
    """
    Job lifecycle states, stored as a small integer code.

    State transitions:
    - QUEUED -> RUNNING (claimed)
    - RUNNING -> removed (completed)
    - RUNNING -> QUEUED (failed, failed_attempts + 1)
    - RUNNING -> QUEUED (lease expired - crash recovery, failed_attempts + 1)

    FAILED is reserved; no transition currently reaches it. Jobs that exhaust
    their attempts stay QUEUED and are excluded from claims.
    """

    QUEUED = 0
    RUNNING = 1
    FAILED = 2


# Default values
DEFAULT_MAX_FAILED_ATTEMPTS = 3
DEFAULT_LEASE_DURATION_SECONDS = 30

# Largest batch a single claim may return
MAX_CLAIM_BATCH = 100

# Table name
QUEUE_TABLE = "queue"

# API constants
API_V1_PREFIX = "/v1"

# Metrics names
METRIC_QUEUE_DEPTH = "job_queue_depth"
METRIC_JOBS_PUSHED = "jobs_pushed_total"
METRIC_JOBS_CLAIMED = "jobs_claimed_total"
METRIC_JOBS_ACKED = "jobs_acked_total"
METRIC_JOB_DURATION = "job_duration_seconds"
METRIC_CLAIM_ERRORS = "claim_errors_total"
METRIC_ACK_ERRORS = "ack_errors_total"
METRIC_LEASES_RECLAIMED = "leases_reclaimed_total"

# Trace span names
SPAN_PUSH_JOB = "push_job"
SPAN_CLAIM_JOBS = "claim_jobs"
SPAN_EXECUTE_JOB = "execute_job"
SPAN_ACK_JOB = "ack_job"
