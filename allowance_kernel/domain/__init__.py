"""
Pure domain layer.

Value objects, the application lifecycle table and the collaborator
protocols.  NO dependencies on the ORM, the database or I/O.
"""

from allowance_kernel.domain.application import (
    ADMIN_ROLE,
    APPLICATION_TRANSITIONS,
    REVIEWER_ROLE,
    Application,
    ApplicationStatus,
    LifecycleEvent,
    LifecycleEventKind,
    TransferReceipt,
)
from allowance_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from allowance_kernel.domain.ports import CustodyLedger, EventSink, RoleGate

__all__ = [
    "ADMIN_ROLE",
    "APPLICATION_TRANSITIONS",
    "REVIEWER_ROLE",
    "Application",
    "ApplicationStatus",
    "Clock",
    "CustodyLedger",
    "DeterministicClock",
    "EventSink",
    "LifecycleEvent",
    "LifecycleEventKind",
    "RoleGate",
    "SystemClock",
    "TransferReceipt",
]
