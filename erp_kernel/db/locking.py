"""
Module: erp_kernel.db.locking
Responsibility: Row-lock helpers and translation of driver-level contention
    errors into ConcurrencyConflictError.
Architecture position: Kernel > DB.  Used by module services that perform
    read-modify-write on inventory items, orders and invoices.

Invariants enforced:
    - Rows are locked with SELECT ... FOR UPDATE and populate_existing so the
      in-session object reflects the locked (latest committed) row.
    - Multiple rows of the same table are always locked in ascending id
      order.  Two transactions touching overlapping item sets therefore
      acquire locks in the same order and cannot deadlock on each other.

Failure modes:
    - ConcurrencyConflictError when the driver reports a deadlock,
      serialization failure, lock-not-available or (SQLite) a locked
      database.  Any other database error propagates unchanged.
"""

from contextlib import contextmanager
from typing import Generator, Iterable, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from erp_kernel.db.base import Base
from erp_kernel.exceptions import ConcurrencyConflictError
from erp_kernel.logging_config import get_logger

logger = get_logger("db.locking")

ModelType = TypeVar("ModelType", bound=Base)

# PostgreSQL SQLSTATEs that mean "another transaction got in the way"
_CONFLICT_SQLSTATES = frozenset({
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "55P03",  # lock_not_available
})

_CONFLICT_MESSAGES = (
    "database is locked",
    "deadlock detected",
    "could not serialize access",
    "could not obtain lock",
    "lock timeout",
)


def is_concurrency_conflict(exc: BaseException) -> bool:
    """True if a DB-API error represents lock contention rather than a bug."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in _CONFLICT_SQLSTATES:
        return True
    message = str(orig).lower()
    return any(fragment in message for fragment in _CONFLICT_MESSAGES)


@contextmanager
def translate_concurrency_errors(operation: str) -> Generator[None, None, None]:
    """
    Re-raise lock contention as ConcurrencyConflictError.

    Usage:
        with translate_concurrency_errors("start_production"):
            ...
    """
    try:
        yield
    except DBAPIError as exc:
        if not is_concurrency_conflict(exc):
            raise
        logger.warning(
            "concurrency_conflict",
            extra={"operation": operation, "detail": str(exc.orig)},
        )
        raise ConcurrencyConflictError(operation, str(exc.orig)) from exc


def lock_row(
    session: Session,
    model: type[ModelType],
    row_id: UUID,
) -> ModelType | None:
    """Load one row with a FOR UPDATE lock; None if it does not exist."""
    return session.execute(
        select(model)
        .where(model.id == row_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def lock_rows(
    session: Session,
    model: type[ModelType],
    row_ids: Iterable[UUID],
) -> dict[UUID, ModelType]:
    """
    Lock several rows of one table in ascending id order.

    Returns:
        Mapping of id to locked instance.  Ids that do not exist are absent.
    """
    locked: dict[UUID, ModelType] = {}
    for row_id in sorted(set(row_ids), key=str):
        row = lock_row(session, model, row_id)
        if row is not None:
            locked[row_id] = row
    return locked
