"""
Module: allowance_kernel.models.application
Responsibility: ORM persistence for applications and reviewer signatures.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Sequential ids: application_id is UNIQUE and allocated by
      SequenceService, never by aggregate max+1.
    - Valid status values: DB check constraint limits status to the
      lifecycle enum; the service layer enforces transition rules.
    - One signature per reviewer: UNIQUE(application_id, reviewer) backs
      the service-level duplicate check.
    - Signatures are append-only (listeners in db/immutability.py).

Failure modes:
    - IntegrityError on duplicate (application_id, reviewer).
    - ImmutabilityViolationError on signature UPDATE/DELETE once
      register_immutability_listeners() has run.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from allowance_kernel.db.base import Base

if TYPE_CHECKING:
    from allowance_kernel.domain.application import Application


class ApplicationModel(Base):
    """Persistent allowance application.

    Contract:
        applicant, info and amount are write-once.  approval_count never
        decreases.  CLAIMED is terminal.  (Enforced by db/immutability.py.)
    """

    __tablename__ = "applications"

    __table_args__ = (
        CheckConstraint(
            "status IN ('submitted', 'verified', 'approved', 'claimed', 'rejected')",
            name="ck_applications_valid_status",
        ),
        CheckConstraint("amount >= 0", name="ck_applications_amount_non_negative"),
        CheckConstraint(
            "approval_count >= 0", name="ck_applications_approval_count_non_negative",
        ),
        CheckConstraint("application_id > 0", name="ck_applications_id_positive"),
        Index("ix_applications_applicant", "applicant"),
        Index("ix_applications_status", "status"),
    )

    application_id: Mapped[int] = mapped_column(
        BigInteger, nullable=False, unique=True,
    )
    applicant: Mapped[str] = mapped_column(String(200), nullable=False)
    info: Mapped[str] = mapped_column(Text, nullable=False, default="")
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="submitted")
    approval_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    signatures: Mapped[list["ApprovalSignatureModel"]] = relationship(
        "ApprovalSignatureModel",
        back_populates="application",
        primaryjoin="ApplicationModel.application_id == ApprovalSignatureModel.application_id",
        order_by="ApprovalSignatureModel.signed_at",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<Application {self.application_id} "
            f"applicant={self.applicant} status={self.status} "
            f"approvals={self.approval_count}>"
        )

    def to_dto(self) -> Application:
        """Convert ORM model to frozen domain DTO."""
        from allowance_kernel.domain.application import (
            Application as ApplicationDTO,
            ApplicationStatus,
        )

        return ApplicationDTO(
            application_id=self.application_id,
            applicant=self.applicant,
            info=self.info,
            amount=self.amount,
            status=ApplicationStatus(self.status),
            approval_count=self.approval_count,
            submitted_at=self.submitted_at,
            signers=tuple(s.reviewer for s in self.signatures),
        )


class ApprovalSignatureModel(Base):
    """One reviewer's signature on one application. Append-only."""

    __tablename__ = "approval_signatures"

    __table_args__ = (
        Index("ix_approval_signatures_application_id", "application_id"),
        UniqueConstraint(
            "application_id", "reviewer",
            name="uq_approval_signatures_reviewer",
        ),
    )

    application_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("applications.application_id"),
        nullable=False,
    )
    reviewer: Mapped[str] = mapped_column(String(200), nullable=False)
    signed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    application: Mapped["ApplicationModel"] = relationship(
        "ApplicationModel",
        back_populates="signatures",
        foreign_keys=[application_id],
        primaryjoin="ApprovalSignatureModel.application_id == ApplicationModel.application_id",
    )

    def __repr__(self) -> str:
        return f"<ApprovalSignature application={self.application_id} reviewer={self.reviewer}>"

