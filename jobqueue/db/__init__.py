"""
Database module.
Contains database connection, models, and job store implementations.
"""

from jobqueue.db.connection import (
    close_db,
    create_session_factory,
    get_engine,
    get_session_factory,
    init_db,
)
from jobqueue.db.models import Base, JobRecord
from jobqueue.db.repository import (
    CompareAndSwapJobStore,
    PostgresJobStore,
    SqlJobStore,
    create_job_store,
)

__all__ = [
    "get_session_factory",
    "create_session_factory",
    "get_engine",
    "init_db",
    "close_db",
    "JobRecord",
    "Base",
    "SqlJobStore",
    "PostgresJobStore",
    "CompareAndSwapJobStore",
    "create_job_store",
]
