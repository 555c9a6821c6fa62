"""
SequenceService -- document number allocation via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers for order, invoice and
    credit note documents.  Uses a dedicated counter table with row-level
    locking (``SELECT ... FOR UPDATE``) so two concurrent transactions never
    receive the same number.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by OrderService and InvoicingService.

Invariants enforced:
    - Monotonicity: the locked counter row is the sole source of truth
      for the next value.  ``MAX(number) + 1`` is never used.
    - Transactional: the increment is only visible after the caller's
      transaction commits.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).

Audit relevance:
    Allocation is logged at DEBUG level with sequence_name and value.
"""

from datetime import date

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from erp_kernel.db.base import Base
from erp_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    # Sequence name (e.g., "INV-24")
    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


def format_document_number(prefix: str, year: int, value: int, width: int = 5) -> str:
    """
    Format a document number as PREFIX-YY-NNNNN.

    Example:
        format_document_number("INV", 2024, 7) -> "INV-24-00007"
    """
    return f"{prefix}-{year % 100:02d}-{value:0{width}d}"


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session: Session):
        self._session = session

    def _lock_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Locks the sequence row (creating it on first use), increments the
        counter and returns the new value.  If the caller's transaction
        rolls back, the value is not consumed.

        Returns:
            The next sequence value (always > 0).
        """
        counter = self._lock_counter(sequence_name)

        if counter is None:
            # First use: another transaction may create the row concurrently,
            # so insert inside a savepoint and fall back to the locked read.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._lock_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def next_document_number(
        self,
        prefix: str,
        on_date: date,
        width: int = 5,
    ) -> str:
        """
        Allocate the next PREFIX-YY-NNNNN number.

        Numbering restarts every calendar year: each (prefix, year) pair
        has its own counter row.
        """
        value = self.next_value(f"{prefix}-{on_date.year % 100:02d}")
        return format_document_number(prefix, on_date.year, value, width)

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None
