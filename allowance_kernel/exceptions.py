"""
Typed exception hierarchy for the allowance kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A disbursement kernel must reject calls precisely. Callers catch by type,
never by message text:

    try:
        registry.claim(application_id, caller)
    except AlreadyClaimedError as e:
        respond(code=e.code, application_id=e.application_id)
    except ClaimError as e:
        log.warning("claim rejected: %s", e.code)

Every class carries:
  1. a ``code`` class attribute (machine-readable, API-safe)
  2. structured attributes describing the rejected call

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    AllowanceKernelError (base)
    |
    +-- AuthorizationError
    |   +-- UnauthorizedError
    |
    +-- ApplicationError
    |   +-- ApplicationNotFoundError
    |   +-- InvalidAmountError
    |   +-- InvalidTransitionError
    |
    +-- ApprovalError
    |   +-- NotVerifiedError
    |   +-- DuplicateApprovalError
    |   +-- AlreadyApprovedError
    |
    +-- ClaimError
    |   +-- NotApplicantError
    |   +-- NotApprovedError
    |   +-- AlreadyClaimedError
    |   +-- ClaimTransferFailedError
    |
    +-- CustodyError
    |   +-- InsufficientFundsError
    |   +-- InvalidFundingAmountError
    |
    +-- ConfigurationError
    |   +-- InvalidQuorumError
    |
    +-- AuditError
    |   +-- EventChainBrokenError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Authorization   | UNAUTHORIZED                | Caller lacks the required role
----------------|-----------------------------|-----------------------------------------
Application     | APPLICATION_NOT_FOUND       | Id is 0 or was never submitted
                | INVALID_AMOUNT              | Negative or non-integer claim amount
                | INVALID_TRANSITION          | Edge not in the lifecycle table
----------------|-----------------------------|-----------------------------------------
Approval        | NOT_VERIFIED                | Signing an unverified application
                | DUPLICATE_APPROVAL          | Same reviewer signing twice
                | ALREADY_APPROVED            | Signing after quorum was reached
----------------|-----------------------------|-----------------------------------------
Claim           | NOT_APPLICANT               | Claimant is not the original applicant
                | NOT_APPROVED                | Quorum not yet reached
                | ALREADY_CLAIMED             | Latch already set
                | CLAIM_TRANSFER_FAILED       | Transfer failed after the latch (fatal)
----------------|-----------------------------|-----------------------------------------
Custody         | INSUFFICIENT_FUNDS          | Pool balance below the claim amount
                | INVALID_FUNDING_AMOUNT      | Deposit of zero or a negative amount
----------------|-----------------------------|-----------------------------------------
Configuration   | INVALID_QUORUM              | required_approvals is not positive
----------------|-----------------------------|-----------------------------------------
Audit           | EVENT_CHAIN_BROKEN          | Lifecycle event hash chain mismatch
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying an append-only record

===============================================================================
FATAL ERRORS
===============================================================================

``ClaimTransferFailedError`` is the single rejection that leaves state
changed: the CLAIMED latch was already set when the custody transfer
failed. It must be escalated to an operator, never retried as a new claim
(a retry fails with ``AlreadyClaimedError``).

===============================================================================
"""


class AllowanceKernelError(Exception):
    """
    Base exception for all allowance kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "ALLOWANCE_KERNEL_ERROR"


# Authorization exceptions


class AuthorizationError(AllowanceKernelError):
    """Base exception for role-gate failures."""

    code: str = "AUTHORIZATION_ERROR"


class UnauthorizedError(AuthorizationError):
    """Caller does not hold the role required by the operation."""

    code: str = "UNAUTHORIZED"

    def __init__(self, role: str, identity: str):
        self.role = role
        self.identity = identity
        super().__init__(f"Principal {identity!r} does not hold role {role!r}")


# Application exceptions


class ApplicationError(AllowanceKernelError):
    """Base exception for application record errors."""

    code: str = "APPLICATION_ERROR"


class ApplicationNotFoundError(ApplicationError):
    """No application exists under the given id."""

    code: str = "APPLICATION_NOT_FOUND"

    def __init__(self, application_id: int):
        self.application_id = application_id
        super().__init__(f"Application not found: {application_id}")


class InvalidAmountError(ApplicationError):
    """Claim amount is negative or not an integer number of minor units."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: object):
        self.amount = amount
        super().__init__(
            f"Invalid amount {amount!r}: must be a non-negative integer of minor units"
        )


class InvalidTransitionError(ApplicationError):
    """Requested status change is not an edge of the lifecycle table."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, application_id: int, from_status: str, to_status: str):
        self.application_id = application_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Application {application_id}: cannot transition "
            f"from {from_status} to {to_status}"
        )


# Approval exceptions


class ApprovalError(AllowanceKernelError):
    """Base exception for signing errors."""

    code: str = "APPROVAL_ERROR"


class NotVerifiedError(ApprovalError):
    """Application must be verified before reviewers can sign it."""

    code: str = "NOT_VERIFIED"

    def __init__(self, application_id: int):
        self.application_id = application_id
        super().__init__(f"Application {application_id} has not been verified")


class DuplicateApprovalError(ApprovalError):
    """Reviewer has already signed this application."""

    code: str = "DUPLICATE_APPROVAL"

    def __init__(self, application_id: int, reviewer: str):
        self.application_id = application_id
        self.reviewer = reviewer
        super().__init__(
            f"Reviewer {reviewer!r} has already signed application {application_id}"
        )


class AlreadyApprovedError(ApprovalError):
    """Quorum was already reached; further signatures are not counted."""

    code: str = "ALREADY_APPROVED"

    def __init__(self, application_id: int):
        self.application_id = application_id
        super().__init__(f"Application {application_id} is already approved")


# Claim exceptions


class ClaimError(AllowanceKernelError):
    """Base exception for claim errors."""

    code: str = "CLAIM_ERROR"


class NotApplicantError(ClaimError):
    """Only the original applicant may claim."""

    code: str = "NOT_APPLICANT"

    def __init__(self, application_id: int, caller: str):
        self.application_id = application_id
        self.caller = caller
        super().__init__(
            f"Principal {caller!r} is not the applicant of application {application_id}"
        )


class NotApprovedError(ClaimError):
    """Application has not reached quorum."""

    code: str = "NOT_APPROVED"

    def __init__(self, application_id: int):
        self.application_id = application_id
        super().__init__(f"Application {application_id} is not approved")


class AlreadyClaimedError(ClaimError):
    """The claimed latch is already set."""

    code: str = "ALREADY_CLAIMED"

    def __init__(self, application_id: int):
        self.application_id = application_id
        super().__init__(f"Application {application_id} has already been claimed")


class ClaimTransferFailedError(ClaimError):
    """
    Custody transfer failed after the claimed latch was set.

    Non-recoverable: the latch is NOT reverted. Operators must reconcile
    the custody ledger manually.
    """

    code: str = "CLAIM_TRANSFER_FAILED"

    def __init__(self, application_id: int, claimant: str, amount: int, reason: str):
        self.application_id = application_id
        self.claimant = claimant
        self.amount = amount
        self.reason = reason
        super().__init__(
            f"Transfer of {amount} to {claimant!r} for application "
            f"{application_id} failed after claim latch: {reason}"
        )


# Custody exceptions


class CustodyError(AllowanceKernelError):
    """Base exception for custody ledger errors."""

    code: str = "CUSTODY_ERROR"


class InsufficientFundsError(CustodyError):
    """Custodial pool balance is below the requested amount."""

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(self, balance: int, requested: int, account: str = "custody"):
        self.account = account
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Insufficient funds in {account!r}: balance {balance}, requested {requested}"
        )


class InvalidFundingAmountError(CustodyError):
    """Deposits must be strictly positive integers."""

    code: str = "INVALID_FUNDING_AMOUNT"

    def __init__(self, amount: object):
        self.amount = amount
        super().__init__(f"Invalid funding amount {amount!r}: must be a positive integer")


# Configuration exceptions


class ConfigurationError(AllowanceKernelError):
    """Base exception for configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class InvalidQuorumError(ConfigurationError):
    """required_approvals must be a positive integer."""

    code: str = "INVALID_QUORUM"

    def __init__(self, required_approvals: object):
        self.required_approvals = required_approvals
        super().__init__(
            f"Invalid quorum {required_approvals!r}: must be a positive integer"
        )


# Audit exceptions


class AuditError(AllowanceKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class EventChainBrokenError(AuditError):
    """Lifecycle event hash chain validation failed."""

    code: str = "EVENT_CHAIN_BROKEN"

    def __init__(self, seq: int, expected_hash: str, actual_hash: str):
        self.seq = seq
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Event chain broken at seq {seq}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Immutability exceptions


class ImmutabilityError(AllowanceKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only or write-once record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
