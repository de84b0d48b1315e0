"""
EventRecorder -- tamper-evident lifecycle event log.

Responsibility:
    Implements the ``EventSink`` port on top of the ``lifecycle_events``
    table.  Every recorded event carries a cryptographic link to its
    predecessor, and the whole chain can be re-verified on demand.

Architecture position:
    Kernel > Services -- imperative shell, called by ApplicationRegistry.

Invariants enforced:
    - Sequence monotonicity via SequenceService (never raw SQL max+1).
    - Chain integrity: ``hash = H(kind | application_id | payload_hash |
      prev_hash)``.
    - Append-only: rows are never modified or deleted (db/immutability.py).

Failure modes:
    - EventChainBrokenError: recomputed hash does not match stored hash,
      or prev_hash does not match the predecessor's hash.
    - Database errors propagate: the recorder shares the caller's
      transaction, so a failed append rolls back with the operation.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from allowance_kernel.domain.application import LifecycleEvent, LifecycleEventKind
from allowance_kernel.domain.clock import Clock, SystemClock
from allowance_kernel.exceptions import EventChainBrokenError
from allowance_kernel.logging_config import get_logger
from allowance_kernel.models.lifecycle_event import LifecycleEventRecord
from allowance_kernel.services.sequence_service import SequenceService
from allowance_kernel.utils.hashing import GENESIS, hash_lifecycle_event, hash_payload

logger = get_logger("services.event_recorder")


def _to_dto(row: LifecycleEventRecord) -> LifecycleEvent:
    return LifecycleEvent(
        seq=row.seq,
        kind=LifecycleEventKind(row.kind),
        application_id=row.application_id,
        fields=dict(row.payload),
        occurred_at=row.occurred_at,
        hash=row.hash,
    )


class EventRecorder:
    """
    SQL-backed ``EventSink`` with hash chain linkage.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        last = self._session.execute(
            select(LifecycleEventRecord)
            .order_by(LifecycleEventRecord.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

        return last.hash if last else None

    def record(self, kind: str, **fields: Any) -> None:
        """Append one lifecycle event.

        ``fields`` must contain ``id`` (the application id); it becomes the
        indexed ``application_id`` column as well as part of the payload.
        """
        kind = LifecycleEventKind(kind)
        seq = self._sequence_service.next_value(SequenceService.LIFECYCLE_EVENT)
        prev_hash = self._get_last_hash()

        payload_hash = hash_payload(fields)
        event_hash = hash_lifecycle_event(
            kind=kind.value,
            application_id=fields["id"],
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        self._session.add(
            LifecycleEventRecord(
                seq=seq,
                kind=kind.value,
                application_id=fields["id"],
                occurred_at=self._clock.now(),
                payload=dict(fields),
                payload_hash=payload_hash,
                prev_hash=prev_hash,
                hash=event_hash,
            )
        )
        self._session.flush()

        logger.info(
            "lifecycle_event_recorded",
            extra={"kind": kind.value, "application_id": fields["id"], "seq": seq},
        )

    def events_for(self, application_id: int) -> list[LifecycleEvent]:
        """Ordered event trail of one application."""
        rows = self._session.execute(
            select(LifecycleEventRecord)
            .where(LifecycleEventRecord.application_id == application_id)
            .order_by(LifecycleEventRecord.seq)
        ).scalars().all()
        return [_to_dto(r) for r in rows]

    def all_events(self) -> list[LifecycleEvent]:
        """Every recorded event in sequence order."""
        rows = self._session.execute(
            select(LifecycleEventRecord).order_by(LifecycleEventRecord.seq)
        ).scalars().all()
        return [_to_dto(r) for r in rows]

    def validate_chain(self) -> bool:
        """
        Recompute every hash in sequence order.

        Returns True when the chain is intact.

        Raises:
            EventChainBrokenError: at the first mismatching event.
        """
        rows = self._session.execute(
            select(LifecycleEventRecord).order_by(LifecycleEventRecord.seq)
        ).scalars().all()

        prev_hash: str | None = None
        for row in rows:
            if row.prev_hash != prev_hash:
                raise EventChainBrokenError(row.seq, prev_hash or GENESIS, row.prev_hash or GENESIS)

            payload_hash = hash_payload(row.payload)
            if payload_hash != row.payload_hash:
                raise EventChainBrokenError(row.seq, payload_hash, row.payload_hash)

            expected = hash_lifecycle_event(
                kind=row.kind,
                application_id=row.application_id,
                payload_hash=payload_hash,
                prev_hash=prev_hash,
            )
            if expected != row.hash:
                raise EventChainBrokenError(row.seq, expected, row.hash)
            prev_hash = row.hash

        logger.info("event_chain_validated", extra={"event_count": len(rows)})
        return True
