"""
ORM-level immutability enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

A disbursement record must not be rewritten after the fact.  The amount an
applicant asked for, who asked for it, and how many reviewers signed are
the facts a claim is paid against.  These listeners intercept writes made
through SQLAlchemy before any SQL reaches the database:

    session.flush()
         |
         v
    [before_update event] --> _check_*() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                 | Rule
-----------------------|-------------------------------------------------------
LifecycleEventRecord   | ALWAYS immutable (append-only audit trail)
ApplicationModel       | applicant/info/amount/application_id write-once;
                       | approval_count never decreases; status only moves
                       | along lifecycle edges; CLAIMED is terminal;
                       | never deleted
ApprovalSignatureModel | ALWAYS immutable (one row per reviewer signature)
CustodyMovementModel   | ALWAYS immutable (balance history)

===============================================================================
USAGE
===============================================================================

    from allowance_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once, at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
    # ... forbidden operation ...
    register_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from allowance_kernel.exceptions import ImmutabilityViolationError
from allowance_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_WRITE_ONCE_APPLICATION_FIELDS = ("application_id", "applicant", "info", "amount")


def _check_lifecycle_event_immutability(mapper, connection, target):
    """Lifecycle events are append-only."""
    logger.error("lifecycle_event_update_blocked", extra={"seq": target.seq})
    raise ImmutabilityViolationError(
        entity_type="LifecycleEvent",
        entity_id=str(target.seq),
        reason="Lifecycle events are immutable -- cannot modify",
    )


def _check_lifecycle_event_delete(mapper, connection, target):
    logger.error("lifecycle_event_delete_blocked", extra={"seq": target.seq})
    raise ImmutabilityViolationError(
        entity_type="LifecycleEvent",
        entity_id=str(target.seq),
        reason="Lifecycle events are immutable -- cannot delete",
    )


def _check_application_immutability(mapper, connection, target):
    """
    Enforce the write-once and monotonic rules on applications.

    Uses attribute history so the check looks at what is being changed
    in this flush, not at the final state.
    """
    from allowance_kernel.domain.application import (
        APPLICATION_TRANSITIONS,
        ApplicationStatus,
    )

    entity_id = str(target.application_id)

    for field in _WRITE_ONCE_APPLICATION_FIELDS:
        history = get_history(target, field)
        if history.deleted and history.added and history.deleted[0] != history.added[0]:
            logger.error(
                "application_field_update_blocked",
                extra={"application_id": entity_id, "field": field},
            )
            raise ImmutabilityViolationError(
                entity_type="Application",
                entity_id=entity_id,
                reason=f"{field} is write-once",
            )

    count_history = get_history(target, "approval_count")
    if count_history.deleted and count_history.added:
        if count_history.added[0] < count_history.deleted[0]:
            raise ImmutabilityViolationError(
                entity_type="Application",
                entity_id=entity_id,
                reason=(
                    f"approval_count cannot decrease "
                    f"({count_history.deleted[0]} -> {count_history.added[0]})"
                ),
            )

    status_history = get_history(target, "status")
    if status_history.deleted and status_history.added:
        old, new = status_history.deleted[0], status_history.added[0]
        if old == new:
            return
        if old == ApplicationStatus.CLAIMED.value:
            raise ImmutabilityViolationError(
                entity_type="Application",
                entity_id=entity_id,
                reason="Claimed applications are final",
            )
        if ApplicationStatus(new) not in APPLICATION_TRANSITIONS[ApplicationStatus(old)]:
            raise ImmutabilityViolationError(
                entity_type="Application",
                entity_id=entity_id,
                reason=f"Illegal status change {old} -> {new}",
            )


def _check_application_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="Application",
        entity_id=str(target.application_id),
        reason="Applications cannot be deleted",
    )


def _check_signature_immutability(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="ApprovalSignature",
        entity_id=f"{target.application_id}:{target.reviewer}",
        reason="Approval signatures are immutable -- cannot modify",
    )


def _check_signature_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="ApprovalSignature",
        entity_id=f"{target.application_id}:{target.reviewer}",
        reason="Approval signatures are immutable -- cannot delete",
    )


def _check_movement_immutability(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="CustodyMovement",
        entity_id=str(target.id),
        reason="Custody movements are immutable -- cannot modify",
    )


def _check_movement_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="CustodyMovement",
        entity_id=str(target.id),
        reason="Custody movements are immutable -- cannot delete",
    )


def _listeners():
    from allowance_kernel.models.application import ApplicationModel, ApprovalSignatureModel
    from allowance_kernel.models.custody import CustodyMovementModel
    from allowance_kernel.models.lifecycle_event import LifecycleEventRecord

    return (
        (LifecycleEventRecord, "before_update", _check_lifecycle_event_immutability),
        (LifecycleEventRecord, "before_delete", _check_lifecycle_event_delete),
        (ApplicationModel, "before_update", _check_application_immutability),
        (ApplicationModel, "before_delete", _check_application_delete),
        (ApprovalSignatureModel, "before_update", _check_signature_immutability),
        (ApprovalSignatureModel, "before_delete", _check_signature_delete),
        (CustodyMovementModel, "before_update", _check_movement_immutability),
        (CustodyMovementModel, "before_delete", _check_movement_delete),
    )


def register_immutability_listeners():
    """
    Register every immutability listener.

    Call once at startup, before any database work.  Safe to call more
    than once.
    """
    for target, name, fn in _listeners():
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove every immutability listener.

    WARNING: Only use this in tests that intentionally violate the rules
    to verify detection (e.g. event chain tampering).
    """
    for target, name, fn in _listeners():
        _safe_remove_listener(target, name, fn)
