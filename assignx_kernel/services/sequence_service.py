"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing numbers for human-readable identifiers,
    chiefly project numbers (``AX-00001``).  Uses a counter table with
    row-level locking (``SELECT ... FOR UPDATE``) so two submissions never
    receive the same number.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Called by the
    lifecycle facade when a project is submitted.

Invariants enforced:
    - Monotonic: the locked counter row is the sole source of the next
      value.  Aggregate max()+1 over the projects table is never used.
    - Transactional: the increment is visible only after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent creation of the same counter (handled via
      savepoint rollback and retry).
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from assignx_kernel.logging_config import get_logger
from assignx_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    PROJECT_NUMBER = "project_number"
    PROJECT_NUMBER_PREFIX = "AX"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Postconditions:
            - Returns an integer > 0, strictly greater than any value
              previously returned for this name.
            - The counter row stays locked until the transaction completes.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use of this sequence; another transaction may race us.
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
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

    def next_project_number(self) -> str:
        """Allocate the next project number, e.g. ``AX-00085``."""
        value = self.next_value(self.PROJECT_NUMBER)
        return format_project_number(value, self.PROJECT_NUMBER_PREFIX)


def format_project_number(value: int, prefix: str = SequenceService.PROJECT_NUMBER_PREFIX) -> str:
    """Zero-padded to five digits; wider numbers are never truncated."""
    return f"{prefix}-{value:05d}"
