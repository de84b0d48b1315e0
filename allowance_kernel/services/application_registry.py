"""
ApplicationRegistry -- submit / verify / sign / claim.

Responsibility:
    Owns the allowance application lifecycle.  Applicants submit,
    reviewers verify and sign, and once the signature quorum is reached
    the original applicant claims the amount from the custodial pool.

Architecture position:
    Kernel > Services -- imperative shell.
    Depends on the ``RoleGate``, ``CustodyLedger`` and ``EventSink``
    ports (domain/ports.py) and allocates ids through SequenceService.
    Wrapped by ``allowance_services.DisbursementService`` for
    transactional hosting.

Invariants enforced:
    - Ids are 1..application_count, sequential, never reused.
    - Approved implies verified and approval_count >= required_approvals.
    - Claimed implies approved.
    - One signature per (application, reviewer); a second is rejected
      and never counted.
    - amount and approval_count never decrease.
    - At most one claim transfer per application: the CLAIMED latch is
      checked and set under the registry lock and a row lock, before the
      custody transfer runs.

Failure modes:
    - UnauthorizedError: caller lacks the reviewer role (verify/sign).
    - ApplicationNotFoundError: id 0 or never submitted.
    - InvalidAmountError: negative or non-integer amount on submit.
    - NotVerifiedError / AlreadyApprovedError / DuplicateApprovalError.
    - NotApplicantError / NotApprovedError / AlreadyClaimedError.
    - InsufficientFundsError: pool balance below the amount.  Nothing
      changes and the claim can be retried after funding.
    - ClaimTransferFailedError: the transfer failed after the latch.
      Fatal; the latch stays set.

Audit relevance:
    Every successful operation emits a lifecycle event to the sink.
    Rejections are logged at WARNING before the exception propagates.
"""

from __future__ import annotations

import threading
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from allowance_kernel.domain.application import (
    APPROVED_STATUSES,
    REVIEWER_ROLE,
    VERIFIED_STATUSES,
    Application,
    ApplicationStatus,
    LifecycleEventKind,
    status_after_signature,
    validate_amount,
    validate_quorum,
    validate_transition,
)
from allowance_kernel.domain.clock import Clock, SystemClock
from allowance_kernel.domain.ports import CustodyLedger, EventSink, RoleGate
from allowance_kernel.exceptions import (
    AlreadyApprovedError,
    AlreadyClaimedError,
    ApplicationNotFoundError,
    ClaimTransferFailedError,
    DuplicateApprovalError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidTransitionError,
    NotApplicantError,
    NotApprovedError,
    NotVerifiedError,
    UnauthorizedError,
)
from allowance_kernel.logging_config import LogContext, get_logger
from allowance_kernel.models.application import ApplicationModel, ApprovalSignatureModel
from allowance_kernel.services.sequence_service import SequenceService

logger = get_logger("services.application_registry")

# Process-wide serialization point.  Re-entrant so DisbursementService can
# hold it across a whole unit of work while the registry takes it again.
REGISTRY_LOCK = threading.RLock()


class ApplicationRegistry:
    """
    Allowance application registry.

    Contract:
        Every mutating operation runs to completion under ``lock`` with
        no interleaving, and flushes within the caller's transaction.

    Non-goals:
        - Does NOT commit; the caller owns transaction boundaries.
        - Does NOT fund the pool -- see ``SqlCustodyLedger.fund``.
    """

    def __init__(
        self,
        session: Session,
        role_gate: RoleGate,
        custody: CustodyLedger,
        events: EventSink,
        required_approvals: int,
        clock: Clock | None = None,
        reviewer_role: str = REVIEWER_ROLE,
        lock: Any = None,
    ):
        self.session = session
        self._required_approvals = validate_quorum(required_approvals)
        self._role_gate = role_gate
        self._custody = custody
        self._events = events
        self._clock = clock or SystemClock()
        self._reviewer_role = reviewer_role
        self._lock = lock if lock is not None else REGISTRY_LOCK
        self._sequence = SequenceService(session)

    @property
    def required_approvals(self) -> int:
        return self._required_approvals

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _require_reviewer(self, caller: str, operation: str) -> None:
        if not self._role_gate.has_role(self._reviewer_role, caller):
            logger.warning(
                "operation_unauthorized",
                extra={"operation": operation, "role": self._reviewer_role},
            )
            raise UnauthorizedError(self._reviewer_role, caller)

    def _load(self, application_id: int, for_update: bool = False) -> ApplicationModel:
        if (
            isinstance(application_id, bool)
            or not isinstance(application_id, int)
            or application_id <= 0
        ):
            logger.warning("application_not_found")
            raise ApplicationNotFoundError(application_id)

        stmt = select(ApplicationModel).where(
            ApplicationModel.application_id == application_id
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        model = self.session.execute(stmt).scalar_one_or_none()

        if model is None:
            logger.warning("application_not_found")
            raise ApplicationNotFoundError(application_id)
        return model

    def _signed(self, application_id: int, reviewer: str) -> bool:
        return self.session.execute(
            select(ApprovalSignatureModel.id).where(
                ApprovalSignatureModel.application_id == application_id,
                ApprovalSignatureModel.reviewer == reviewer,
            )
        ).first() is not None

    def _set_status(self, model: ApplicationModel, target: ApplicationStatus) -> None:
        validate_transition(model.application_id, ApplicationStatus(model.status), target)
        model.status = target.value

    # =========================================================================
    # Operations
    # =========================================================================

    def submit(self, applicant: str, info: str, amount: int) -> int:
        """
        Create a new application in SUBMITTED state.

        Permissionless.  Returns the new application id, which equals the
        new application count.

        Raises:
            InvalidAmountError: amount is negative or not an integer.
        """
        try:
            validate_amount(amount)
        except InvalidAmountError:
            logger.warning("application_amount_invalid", extra={"amount": repr(amount)})
            raise

        with self._lock, LogContext.bind(actor_id=applicant):
            application_id = self._sequence.next_value(SequenceService.APPLICATION)
            self.session.add(
                ApplicationModel(
                    application_id=application_id,
                    applicant=applicant,
                    info=info,
                    amount=amount,
                    status=ApplicationStatus.SUBMITTED.value,
                    approval_count=0,
                    submitted_at=self._clock.now(),
                )
            )
            self.session.flush()

            self._events.record(
                LifecycleEventKind.SUBMITTED.value,
                id=application_id,
                applicant=applicant,
                amount=amount,
            )

            logger.info(
                "application_submitted",
                extra={"application_id": application_id, "amount": amount},
            )
            return application_id

    def verify(self, application_id: int, caller: str) -> None:
        """
        Mark an application as verified.

        Idempotent in effect: verifying an already verified, approved or
        claimed application changes nothing but still emits ``Verified``.

        Raises:
            UnauthorizedError: caller is not a reviewer.
            ApplicationNotFoundError: no such application.
            InvalidTransitionError: the application was rejected.
        """
        with self._lock, LogContext.bind(actor_id=caller, application_id=str(application_id)):
            self._require_reviewer(caller, "verify")
            model = self._load(application_id, for_update=True)
            status = ApplicationStatus(model.status)

            if status == ApplicationStatus.SUBMITTED:
                self._set_status(model, ApplicationStatus.VERIFIED)
                self.session.flush()
            elif status not in VERIFIED_STATUSES:
                logger.warning("application_verify_rejected", extra={"status": status.value})
                raise InvalidTransitionError(
                    application_id, status.value, ApplicationStatus.VERIFIED.value,
                )

            self._events.record(LifecycleEventKind.VERIFIED.value, id=application_id)
            logger.info(
                "application_verified",
                extra={"application_id": application_id, "status": model.status},
            )

    def sign(self, application_id: int, caller: str) -> None:
        """
        Record the caller's approval signature.

        The signature that first brings approval_count to the quorum
        moves the application to APPROVED and emits ``Approved`` once.

        Raises:
            UnauthorizedError: caller is not a reviewer.
            ApplicationNotFoundError: no such application.
            NotVerifiedError: the application is not verified.
            DuplicateApprovalError: caller has already signed.
            AlreadyApprovedError: quorum was already reached.
        """
        with self._lock, LogContext.bind(actor_id=caller, application_id=str(application_id)):
            self._require_reviewer(caller, "sign")
            model = self._load(application_id, for_update=True)
            status = ApplicationStatus(model.status)

            if status not in VERIFIED_STATUSES:
                logger.warning("application_not_verified", extra={"status": status.value})
                raise NotVerifiedError(application_id)

            if self._signed(application_id, caller):
                logger.warning("duplicate_approval")
                raise DuplicateApprovalError(application_id, caller)

            if status in APPROVED_STATUSES:
                logger.warning("application_already_approved", extra={"status": status.value})
                raise AlreadyApprovedError(application_id)

            model.signatures.append(
                ApprovalSignatureModel(
                    application_id=application_id,
                    reviewer=caller,
                    signed_at=self._clock.now(),
                )
            )
            model.approval_count += 1
            self.session.flush()

            self._events.record(
                LifecycleEventKind.SIGNED.value, id=application_id, signer=caller,
            )
            logger.info(
                "application_signed",
                extra={
                    "application_id": application_id,
                    "approval_count": model.approval_count,
                    "required_approvals": self._required_approvals,
                },
            )

            target = status_after_signature(
                status, model.approval_count, self._required_approvals,
            )
            if target != status:
                self._set_status(model, target)
                self.session.flush()
                self._events.record(LifecycleEventKind.APPROVED.value, id=application_id)
                logger.info(
                    "application_approved",
                    extra={
                        "application_id": application_id,
                        "approval_count": model.approval_count,
                    },
                )

    def claim(self, application_id: int, caller: str) -> int:
        """
        Pay out an approved application to its applicant.

        The CLAIMED latch is set and flushed before the custody transfer.
        If the ledger's locked re-check finds the pool short, the latch is
        rolled back and the claim is rejected like any other.  Any other
        transfer failure leaves the latch set.

        Returns:
            The transferred amount.

        Raises:
            ApplicationNotFoundError: no such application.
            NotApplicantError: caller did not submit the application.
            NotApprovedError: quorum not reached.
            AlreadyClaimedError: the latch is already set.
            InsufficientFundsError: pool balance below the amount, at the
                check or at the transfer.
            ClaimTransferFailedError: transfer failed after the latch.
        """
        with self._lock, LogContext.bind(actor_id=caller, application_id=str(application_id)):
            model = self._load(application_id, for_update=True)
            status = ApplicationStatus(model.status)

            if model.applicant != caller:
                logger.warning("claim_not_applicant")
                raise NotApplicantError(application_id, caller)

            if status not in APPROVED_STATUSES:
                logger.warning("claim_not_approved", extra={"status": status.value})
                raise NotApprovedError(application_id)

            if status == ApplicationStatus.CLAIMED:
                logger.warning("claim_already_claimed")
                raise AlreadyClaimedError(application_id)

            amount = model.amount
            available = self._custody.balance()
            if available < amount:
                logger.warning(
                    "claim_insufficient_funds",
                    extra={"balance": available, "amount": amount},
                )
                raise InsufficientFundsError(
                    available, amount, getattr(self._custody, "account", "custody"),
                )

            # Latch before the external effect, inside a savepoint so that a
            # shortfall found by the ledger's own locked check undoes it.
            latch = self.session.begin_nested()
            self._set_status(model, ApplicationStatus.CLAIMED)
            self.session.flush()

            try:
                self._custody.transfer(caller, amount)
            except InsufficientFundsError as exc:
                latch.rollback()
                logger.warning(
                    "claim_insufficient_funds",
                    extra={"balance": exc.balance, "amount": amount},
                )
                raise
            except Exception as exc:
                latch.commit()
                logger.critical(
                    "claim_transfer_failed",
                    extra={"application_id": application_id, "amount": amount},
                    exc_info=True,
                )
                raise ClaimTransferFailedError(
                    application_id, caller, amount, str(exc),
                ) from exc
            latch.commit()

            self._events.record(
                LifecycleEventKind.CLAIMED.value,
                id=application_id,
                claimant=caller,
                amount=amount,
            )
            logger.info(
                "application_claimed",
                extra={"application_id": application_id, "amount": amount},
            )
            return amount

    # =========================================================================
    # Queries
    # =========================================================================

    def get_application(self, application_id: int) -> Application:
        """Frozen snapshot of one application."""
        return self._load(application_id).to_dto()

    def application_count(self) -> int:
        return self._sequence.current_value(SequenceService.APPLICATION)

    def has_signed(self, application_id: int, reviewer: str) -> bool:
        return self._signed(application_id, reviewer)
