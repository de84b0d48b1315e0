"""
ORM immutability listeners: append-only records and write-once fields.
"""

import pytest
from sqlalchemy import select

from allowance_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from allowance_kernel.domain.application import ApplicationStatus
from allowance_kernel.exceptions import ImmutabilityViolationError
from allowance_kernel.models.application import ApplicationModel
from allowance_kernel.models.custody import CustodyMovementModel
from allowance_kernel.models.lifecycle_event import LifecycleEventRecord

APPLICANT = "alice"


def _application(session, application_id):
    return session.execute(
        select(ApplicationModel).where(ApplicationModel.application_id == application_id)
    ).scalar_one()


@pytest.mark.parametrize(
    "field,value",
    [("amount", 10_000), ("applicant", "mallory"), ("info", "rewritten")],
)
def test_write_once_fields(registry, session, field, value):
    application_id = registry.submit(APPLICANT, "textbooks", 100)
    model = _application(session, application_id)

    setattr(model, field, value)
    with pytest.raises(ImmutabilityViolationError):
        session.flush()


def test_approval_count_cannot_decrease(registry, session, approved_application):
    model = _application(session, approved_application)

    model.approval_count = 1
    with pytest.raises(ImmutabilityViolationError):
        session.flush()


def test_claimed_is_terminal(registry, session, approved_application):
    registry.claim(approved_application, APPLICANT)
    model = _application(session, approved_application)

    model.status = ApplicationStatus.APPROVED.value
    with pytest.raises(ImmutabilityViolationError):
        session.flush()


def test_status_cannot_skip_lifecycle(registry, session):
    application_id = registry.submit(APPLICANT, "textbooks", 100)
    model = _application(session, application_id)

    model.status = ApplicationStatus.APPROVED.value
    with pytest.raises(ImmutabilityViolationError):
        session.flush()


def test_applications_cannot_be_deleted(registry, session):
    application_id = registry.submit(APPLICANT, "textbooks", 100)
    session.delete(_application(session, application_id))

    with pytest.raises(ImmutabilityViolationError):
        session.flush()


def test_lifecycle_events_are_append_only(registry, session):
    registry.submit(APPLICANT, "textbooks", 100)
    record = session.execute(select(LifecycleEventRecord)).scalars().first()

    record.kind = "Claimed"
    with pytest.raises(ImmutabilityViolationError):
        session.flush()


def test_signatures_are_append_only(registry, session, approved_application):
    signature = _application(session, approved_application).signatures[0]

    signature.reviewer = "mallory"
    with pytest.raises(ImmutabilityViolationError):
        session.flush()


def test_custody_movements_are_append_only(ledger, session):
    ledger.fund(10, "treasury")
    movement = session.execute(select(CustodyMovementModel)).scalars().first()

    session.delete(movement)
    with pytest.raises(ImmutabilityViolationError):
        session.flush()


def test_unregister_covers_signatures_and_movements(registry, ledger, session, approved_application):
    signature = _application(session, approved_application).signatures[0]
    movement = session.execute(select(CustodyMovementModel)).scalars().first()

    unregister_immutability_listeners()
    try:
        signature.reviewer = "reviewer-z"
        session.delete(movement)
        session.flush()
    finally:
        register_immutability_listeners()

    signature.reviewer = "reviewer-y"
    with pytest.raises(ImmutabilityViolationError):
        session.flush()
