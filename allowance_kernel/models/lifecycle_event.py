"""
Module: allowance_kernel.models.lifecycle_event
Responsibility: ORM persistence for the tamper-evident lifecycle event log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: no UPDATE or DELETE (db/immutability.py listeners).
    - Hash chain: hash = H(kind | application_id | payload_hash | prev_hash).
      Validated by EventRecorder.validate_chain().
    - seq is monotonically increasing, allocated by SequenceService.

Audit relevance:
    This table IS the audit trail of the disbursement workflow.  Every
    Submitted / Verified / Signed / Approved / Claimed event lands here in
    the order it happened.
"""

from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from allowance_kernel.db.base import Base


class LifecycleEventRecord(Base):
    """
    Lifecycle event with hash chain for tamper evidence.

    Guarantees:
        - seq is globally unique and monotonically increasing.
        - prev_hash is None only for the genesis event.
    """

    __tablename__ = "lifecycle_events"

    __table_args__ = (
        Index("idx_lifecycle_application", "application_id"),
        Index("idx_lifecycle_kind", "kind"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    # Submitted / Verified / Signed / Approved / Claimed
    kind: Mapped[str] = mapped_column(String(20), nullable=False)

    application_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    payload: Mapped[dict] = mapped_column(JSON, nullable=False)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<LifecycleEvent #{self.seq} {self.kind} application={self.application_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
