"""
Module: allowance_kernel.selectors.application_selector
Responsibility: Read-only listing queries over applications and their
    signatures, for reviewer queues and operator reports.
Architecture position: Kernel > Selectors.

Audit relevance:
    ``outstanding_liability`` is the amount the custodial pool owes to
    approved but unclaimed applications; operators compare it with the
    pool balance before funding.
"""

from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from allowance_kernel.domain.application import Application, ApplicationStatus
from allowance_kernel.models.application import ApplicationModel, ApprovalSignatureModel


class ApplicationSelector:
    """Queries returning frozen ``Application`` DTOs. Never writes."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, application_id: int) -> Application | None:
        model = self.session.execute(
            select(ApplicationModel).where(
                ApplicationModel.application_id == application_id
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def list_by_status(
        self, statuses: ApplicationStatus | Iterable[ApplicationStatus],
    ) -> list[Application]:
        """Applications in any of ``statuses``, ordered by id."""
        if isinstance(statuses, ApplicationStatus):
            statuses = [statuses]
        values = [ApplicationStatus(s).value for s in statuses]
        rows = self.session.execute(
            select(ApplicationModel)
            .where(ApplicationModel.status.in_(values))
            .order_by(ApplicationModel.application_id)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def list_by_applicant(self, applicant: str) -> list[Application]:
        rows = self.session.execute(
            select(ApplicationModel)
            .where(ApplicationModel.applicant == applicant)
            .order_by(ApplicationModel.application_id)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def awaiting_signatures(self) -> list[Application]:
        """Verified applications that have not reached quorum."""
        return self.list_by_status(ApplicationStatus.VERIFIED)

    def signers(self, application_id: int) -> list[str]:
        """Reviewers that signed ``application_id``, sorted by name."""
        rows = self.session.execute(
            select(ApprovalSignatureModel.reviewer)
            .where(ApprovalSignatureModel.application_id == application_id)
            .order_by(ApprovalSignatureModel.reviewer)
        ).scalars().all()
        return list(rows)

    def outstanding_liability(self) -> int:
        """Sum of amounts of approved, unclaimed applications."""
        total = self.session.execute(
            select(func.coalesce(func.sum(ApplicationModel.amount), 0)).where(
                ApplicationModel.status == ApplicationStatus.APPROVED.value
            )
        ).scalar_one()
        return int(total)
