"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly monotonically increasing sequence numbers for
    application ids and lifecycle events.  Uses a dedicated counter table
    with row-level locking (``SELECT ... FOR UPDATE``) to guarantee
    uniqueness and ordering under concurrent access.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by ApplicationRegistry (application ids) and EventRecorder
    (lifecycle event sequence).

Invariants enforced:
    - Ids are never reused or renumbered: the locked counter row is the sole
      source of truth for the next value.  The aggregate-max-plus-one
      anti-pattern is FORBIDDEN.
    - Transactional: an increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: Concurrent counter creation race (handled via
      savepoint rollback and retry).
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from allowance_kernel.logging_config import get_logger
from allowance_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Guarantees:
        - Strictly monotonic sequences via locked counter row.
        - The first value of every sequence is 1; 0 is never allocated.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    # Well-known sequence names
    APPLICATION = "application"
    LIFECYCLE_EVENT = "lifecycle_event"

    def __init__(self, session: Session):
        self._session = session

    def _lock_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _ensure_counter(self, sequence_name: str) -> SequenceCounter:
        """Locked counter row for ``sequence_name``, created at zero if absent.

        Creation runs in a savepoint: when a concurrent session wins the
        insert, only the savepoint is rolled back and the winner's row is
        locked instead.
        """
        counter = self._lock_counter(sequence_name)
        if counter is not None:
            return counter

        savepoint = self._session.begin_nested()
        try:
            counter = SequenceCounter(name=sequence_name, current_value=0)
            self._session.add(counter)
            self._session.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.debug("sequence_counter_race_retry", extra={"sequence_name": sequence_name})
            counter = self._lock_counter(sequence_name)
            if counter is None:
                raise
            return counter
        savepoint.commit()
        return counter

    def next_value(self, sequence_name: str) -> int:
        """
        Allocate the next value of ``sequence_name``.

        Returns 1 on first use, then exactly one more than the last value
        committed.  The counter row stays locked until the caller's
        transaction ends.
        """
        counter = self._ensure_counter(sequence_name)
        counter.current_value += 1
        self._session.flush()

        value = counter.current_value
        logger.debug("sequence_allocated", extra={"sequence_name": sequence_name, "value": value})
        return value

    def current_value(self, sequence_name: str) -> int:
        """
        Get the current value of a sequence without incrementing.

        Returns 0 for a sequence that has never been allocated.
        """
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else 0
