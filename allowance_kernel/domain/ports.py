"""
Collaborator ports consumed by the application registry.

The registry never reaches for process-wide state: the role registry, the
custodial pool and the event log are injected through these protocols so
that tests can substitute fakes.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from allowance_kernel.domain.application import TransferReceipt


@runtime_checkable
class RoleGate(Protocol):
    """Answers whether a principal holds a named role."""

    def has_role(self, role: str, identity: str) -> bool:
        """Pure query, no side effects."""
        ...

    def grant(self, role: str, identity: str) -> None:
        """Grant ``role`` to ``identity``; granting twice is a no-op."""
        ...


@runtime_checkable
class CustodyLedger(Protocol):
    """Custodial pool that pays approved claims."""

    def balance(self) -> int:
        """Available balance in minor units."""
        ...

    def transfer(self, to: str, amount: int) -> TransferReceipt:
        """Move ``amount`` to ``to`` atomically, or raise and move nothing."""
        ...


@runtime_checkable
class EventSink(Protocol):
    """Append-only, ordered lifecycle event log."""

    def record(self, kind: str, **fields: Any) -> None:
        ...
