"""ORM models for the allowance kernel."""

from allowance_kernel.models.application import ApplicationModel, ApprovalSignatureModel
from allowance_kernel.models.custody import CustodyAccountModel, CustodyMovementModel
from allowance_kernel.models.lifecycle_event import LifecycleEventRecord
from allowance_kernel.models.role_grant import RoleGrantModel
from allowance_kernel.models.sequence import SequenceCounter

__all__ = [
    "ApplicationModel",
    "ApprovalSignatureModel",
    "CustodyAccountModel",
    "CustodyMovementModel",
    "LifecycleEventRecord",
    "RoleGrantModel",
    "SequenceCounter",
]
