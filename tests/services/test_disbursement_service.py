"""
DisbursementService: one committed transaction per call.
"""

import pytest

from allowance_config.schema import RegistryConfig
from allowance_kernel.db.engine import reset_engine
from allowance_kernel.domain.application import ApplicationStatus
from allowance_kernel.exceptions import (
    AlreadyClaimedError,
    ClaimTransferFailedError,
    EventChainBrokenError,
    NotVerifiedError,
    UnauthorizedError,
)
from allowance_kernel.services.custody_ledger import SqlCustodyLedger
from allowance_services.disbursement_service import DisbursementService

APPLICANT = "alice"
A, B, C = "reviewer-a", "reviewer-b", "reviewer-c"


def _approve(service, application_id):
    service.verify(application_id, A)
    service.sign(application_id, A)
    service.sign(application_id, B)


def test_full_lifecycle(disbursement_service):
    service = disbursement_service
    application_id = service.submit(APPLICANT, "textbooks", 100)
    _approve(service, application_id)
    service.fund(100, "treasury")

    assert service.claim(application_id, APPLICANT) == 100
    assert service.balance() == 0
    assert service.get_application(application_id).claimed
    assert [e.kind.value for e in service.events_for(application_id)] == [
        "Submitted", "Verified", "Signed", "Signed", "Approved", "Claimed",
    ]
    assert service.validate_event_chain() is True

    with pytest.raises(AlreadyClaimedError):
        service.claim(application_id, APPLICANT)


def test_rejection_rolls_back(disbursement_service):
    service = disbursement_service
    application_id = service.submit(APPLICANT, "info", 10)

    with pytest.raises(NotVerifiedError):
        service.sign(application_id, A)

    assert service.get_application(application_id).approval_count == 0
    assert len(service.events_for(application_id)) == 1


def test_state_survives_across_calls(disbursement_service):
    service = disbursement_service
    assert service.submit(APPLICANT, "a", 1) == 1
    assert service.submit(APPLICANT, "b", 2) == 2
    assert service.application_count() == 2


def test_applications_by_status(disbursement_service):
    service = disbursement_service
    first = service.submit(APPLICANT, "a", 1)
    second = service.submit("bob", "b", 2)
    service.verify(second, A)

    assert [a.application_id for a in service.applications_by_status(ApplicationStatus.SUBMITTED)] == [first]
    assert [a.application_id for a in service.applications_by_status(ApplicationStatus.VERIFIED)] == [second]


class TestRoleAdministration:
    def test_admin_grants_and_revokes(self, disbursement_service):
        service = disbursement_service
        service.grant_role("reviewer", "dave", granted_by="root")
        assert service.has_role("reviewer", "dave")

        service.revoke_role("reviewer", "dave", revoked_by="root")
        assert not service.has_role("reviewer", "dave")

    def test_non_admin_cannot_grant(self, disbursement_service):
        with pytest.raises(UnauthorizedError) as exc_info:
            disbursement_service.grant_role("reviewer", "mallory", granted_by="mallory")

        assert exc_info.value.role == "admin"
        assert not disbursement_service.has_role("reviewer", "mallory")

    def test_revoked_reviewer_cannot_verify(self, disbursement_service):
        service = disbursement_service
        application_id = service.submit(APPLICANT, "info", 10)
        service.revoke_role("reviewer", C, revoked_by="root")

        with pytest.raises(UnauthorizedError):
            service.verify(application_id, C)


def test_transfer_failure_commits_latch(disbursement_service, monkeypatch):
    service = disbursement_service
    application_id = service.submit(APPLICANT, "info", 40)
    _approve(service, application_id)
    service.fund(40, "treasury")

    def _offline(self, to, amount):
        raise RuntimeError("custody backend offline")

    monkeypatch.setattr(SqlCustodyLedger, "transfer", _offline)

    with pytest.raises(ClaimTransferFailedError):
        service.claim(application_id, APPLICANT)

    monkeypatch.undo()

    assert service.get_application(application_id).claimed
    assert service.balance() == 40
    with pytest.raises(AlreadyClaimedError):
        service.claim(application_id, APPLICANT)


def test_tampered_chain_is_reported(disbursement_service):
    from sqlalchemy import update

    from allowance_kernel.models.lifecycle_event import LifecycleEventRecord

    service = disbursement_service
    service.submit(APPLICANT, "info", 10)

    with service._unit_of_work() as session:
        session.execute(
            update(LifecycleEventRecord).values(hash="0" * 64)
        )

    with pytest.raises(EventChainBrokenError):
        service.validate_event_chain()


def test_from_config(tmp_path):
    url = f"sqlite:///{tmp_path / 'hosted.db'}"
    config = RegistryConfig(
        config_id="hosted", config_version=1, required_approvals=1, database_url=url,
    )
    try:
        service = DisbursementService.from_config(config)
        service.grant_role("reviewer", A)
        application_id = service.submit(APPLICANT, "info", 5)
        service.verify(application_id, A)
        service.sign(application_id, A)

        assert service.get_application(application_id).approved
        assert service.config is config
    finally:
        reset_engine()
