"""
Application domain types (``allowance_kernel.domain.application``).

Responsibility
--------------
Pure value objects for the allowance lifecycle.  Defines the application
state machine, the frozen application and event records, and the pure
transition helpers used by ``ApplicationRegistry``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/``, or outer layers.

Invariants enforced
-------------------
* Lifecycle state machine -- ``APPLICATION_TRANSITIONS`` defines the
  only valid status changes.  CLAIMED and REJECTED have no outgoing
  edges.
* Approved implies verified and quorum reached -- APPROVED is only
  reachable from VERIFIED, and only by ``status_after_signature`` when
  the counter meets the quorum.
* Claimed implies approved -- CLAIMED is only reachable from APPROVED.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from allowance_kernel.exceptions import (
    InvalidAmountError,
    InvalidQuorumError,
    InvalidTransitionError,
)


REVIEWER_ROLE = "reviewer"
ADMIN_ROLE = "admin"


# =========================================================================
# Application Status Lifecycle
# =========================================================================


class ApplicationStatus(str, Enum):
    """Application lifecycle states."""

    SUBMITTED = "submitted"
    VERIFIED = "verified"
    APPROVED = "approved"
    CLAIMED = "claimed"
    # Reserved for an administrative rejection path; nothing transitions here.
    REJECTED = "rejected"


APPLICATION_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.SUBMITTED: frozenset({ApplicationStatus.VERIFIED}),
    ApplicationStatus.VERIFIED: frozenset({ApplicationStatus.APPROVED}),
    ApplicationStatus.APPROVED: frozenset({ApplicationStatus.CLAIMED}),
    ApplicationStatus.CLAIMED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
}

VERIFIED_STATUSES: frozenset[ApplicationStatus] = frozenset({
    ApplicationStatus.VERIFIED,
    ApplicationStatus.APPROVED,
    ApplicationStatus.CLAIMED,
})

APPROVED_STATUSES: frozenset[ApplicationStatus] = frozenset({
    ApplicationStatus.APPROVED,
    ApplicationStatus.CLAIMED,
})


class LifecycleEventKind(str, Enum):
    """Kinds of lifecycle events recorded to the event sink."""

    SUBMITTED = "Submitted"
    VERIFIED = "Verified"
    SIGNED = "Signed"
    APPROVED = "Approved"
    CLAIMED = "Claimed"


# Exact payload fields per event kind.
EVENT_FIELDS: dict[LifecycleEventKind, tuple[str, ...]] = {
    LifecycleEventKind.SUBMITTED: ("id", "applicant", "amount"),
    LifecycleEventKind.VERIFIED: ("id",),
    LifecycleEventKind.SIGNED: ("id", "signer"),
    LifecycleEventKind.APPROVED: ("id",),
    LifecycleEventKind.CLAIMED: ("id", "claimant", "amount"),
}


# =========================================================================
# Records
# =========================================================================


@dataclass(frozen=True)
class Application:
    """Immutable snapshot of an application.

    The boolean views mirror the flag-based description of the lifecycle;
    they are derived from ``status`` and can never disagree with it.
    """

    application_id: int
    applicant: str
    info: str
    amount: int
    status: ApplicationStatus = ApplicationStatus.SUBMITTED
    approval_count: int = 0
    submitted_at: datetime | None = None
    signers: tuple[str, ...] = ()

    @property
    def verified(self) -> bool:
        return self.status in VERIFIED_STATUSES

    @property
    def approved(self) -> bool:
        return self.status in APPROVED_STATUSES

    @property
    def claimed(self) -> bool:
        return self.status == ApplicationStatus.CLAIMED

    @property
    def rejected(self) -> bool:
        return self.status == ApplicationStatus.REJECTED


@dataclass(frozen=True)
class LifecycleEvent:
    """One entry of the ordered lifecycle event trail."""

    seq: int
    kind: LifecycleEventKind
    application_id: int
    fields: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime | None = None
    hash: str | None = None


@dataclass(frozen=True)
class TransferReceipt:
    """Result of a successful custody transfer."""

    account: str
    recipient: str
    amount: int
    balance_after: int


# =========================================================================
# Pure transition helpers
# =========================================================================


def validate_transition(
    application_id: int,
    current: ApplicationStatus,
    target: ApplicationStatus,
) -> None:
    """Raise ``InvalidTransitionError`` unless ``current -> target`` is an edge."""
    if target not in APPLICATION_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(application_id, current.value, target.value)


def status_after_signature(
    current: ApplicationStatus,
    approval_count: int,
    required_approvals: int,
) -> ApplicationStatus:
    """Status an application moves to once ``approval_count`` signatures exist.

    Only a VERIFIED application can latch to APPROVED, and only at the
    signature that first meets the quorum.
    """
    if current == ApplicationStatus.VERIFIED and approval_count >= required_approvals:
        return ApplicationStatus.APPROVED
    return current


def validate_amount(amount: object) -> int:
    """Return ``amount`` if it is a non-negative integer of minor units."""
    # bool is an int subclass; True is not an amount.
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise InvalidAmountError(amount)
    return amount


def validate_quorum(required_approvals: object) -> int:
    """Return ``required_approvals`` if it is a positive integer."""
    if (
        isinstance(required_approvals, bool)
        or not isinstance(required_approvals, int)
        or required_approvals <= 0
    ):
        raise InvalidQuorumError(required_approvals)
    return required_approvals
