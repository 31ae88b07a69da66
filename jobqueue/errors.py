"""
Error taxonomy for queue operations.

Store methods raise these instead of leaking driver exceptions. The
startup-only errors are raised by bootstrap code before any worker runs.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import NoResultFound, SQLAlchemyError


class QueueError(Exception):
    """Base class for every error raised by the queue."""

    prefix = "Queue error"

    def __init__(self, detail: str):
        super().__init__(f"{self.prefix}: {detail}")
        self.detail = detail


class NotFoundError(QueueError):
    """A single-row lookup matched nothing."""

    prefix = "Not found"


class InternalError(QueueError):
    """Unexpected store failure. The driver error is chained as __cause__."""

    prefix = "Internal error"


class BadConfigError(QueueError):
    prefix = "Bad config"


class ConnectingToDatabaseError(QueueError):
    prefix = "Connecting to database"


class DatabaseMigrationError(QueueError):
    prefix = "Migrating database"


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """
    Convert SQLAlchemy exceptions raised inside the block into queue errors.

    Args:
        operation: Name of the store operation, used in the error detail.

    Raises:
        NotFoundError: If the block raised NoResultFound.
        InternalError: For any other SQLAlchemyError.
    """
    try:
        yield
    except NoResultFound as e:
        raise NotFoundError(f"{operation}: row not found") from e
    except SQLAlchemyError as e:
        raise InternalError(f"{operation}: {e}") from e
