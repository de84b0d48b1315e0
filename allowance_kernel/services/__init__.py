"""Services for the allowance kernel (write side)."""

from allowance_kernel.services.application_registry import (
    REGISTRY_LOCK,
    ApplicationRegistry,
)
from allowance_kernel.services.custody_ledger import SqlCustodyLedger
from allowance_kernel.services.event_recorder import EventRecorder
from allowance_kernel.services.event_sinks import (
    CompositeEventSink,
    InMemoryEventSink,
    LoggingEventSink,
)
from allowance_kernel.services.role_gate import SqlRoleGate
from allowance_kernel.services.sequence_service import SequenceService

__all__ = [
    "REGISTRY_LOCK",
    "ApplicationRegistry",
    "CompositeEventSink",
    "EventRecorder",
    "InMemoryEventSink",
    "LoggingEventSink",
    "SequenceService",
    "SqlCustodyLedger",
    "SqlRoleGate",
]
