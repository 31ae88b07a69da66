"""
SQLAlchemy database models.
Defines the queue table.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    DateTime,
    Index,
    Integer,
    SmallInteger,
    TypeDecorator,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from jobqueue.constants import QUEUE_TABLE, JobStatus


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class StatusCode(TypeDecorator):
    """Stores JobStatus as its small integer code."""

    impl = SmallInteger
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> int | None:
        if value is None:
            return None
        return int(value)

    def process_result_value(self, value: Any, dialect: Any) -> JobStatus | None:
        if value is None:
            return None
        return JobStatus(value)


class JobRecord(Base):
    """
    A row of the queue table.

    This is the authoritative source of truth for job state.
    Completed jobs are deleted, so every row is either waiting, running,
    or has exhausted its attempts.
    """

    __tablename__ = QUEUE_TABLE

    # Time-sortable (ULID) primary key
    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        nullable=False,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    scheduled_for: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # Retry tracking
    failed_attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    status: Mapped[JobStatus] = mapped_column(
        StatusCode(),
        nullable=False,
        default=JobStatus.QUEUED,
    )

    # Serialized Message, tagged by its `kind` field
    message: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
    )

    # Set on claim, extended by worker heartbeats
    lease_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Identifies the claim currently holding the job; cleared when it is requeued
    claim_token: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
    )

    __table_args__ = (
        # Index for efficient queue polling
        Index(
            "ix_queue_poll",
            "scheduled_for",
            postgresql_where=text("status = 0"),
            sqlite_where=text("status = 0"),
        ),
        # Index for lease expiry checks
        Index(
            "ix_queue_lease_expiry",
            "lease_expires_at",
            postgresql_where=text("status = 1"),
            sqlite_where=text("status = 1"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"JobRecord(id={self.id}, status={self.status!r}, "
            f"failed_attempts={self.failed_attempts}, scheduled_for={self.scheduled_for})"
        )
