"""SqlRoleGate: grants, revocations and queries."""

from allowance_kernel.domain.ports import RoleGate
from allowance_kernel.services.role_gate import SqlRoleGate


def test_implements_port(session, deterministic_clock):
    assert isinstance(SqlRoleGate(session, deterministic_clock), RoleGate)


def test_grant_and_query(session, deterministic_clock):
    gate = SqlRoleGate(session, deterministic_clock)

    assert not gate.has_role("reviewer", "bob")
    gate.grant("reviewer", "bob", granted_by="root")

    assert gate.has_role("reviewer", "bob")
    assert not gate.has_role("admin", "bob")


def test_grant_is_idempotent(session, deterministic_clock):
    gate = SqlRoleGate(session, deterministic_clock)
    gate.grant("reviewer", "bob")
    gate.grant("reviewer", "bob")

    assert gate.holders("reviewer") == ["bob"]


def test_revoke_and_regrant(session, deterministic_clock):
    gate = SqlRoleGate(session, deterministic_clock)
    gate.grant("reviewer", "bob")
    gate.revoke("reviewer", "bob", revoked_by="root")

    assert not gate.has_role("reviewer", "bob")
    assert gate.holders("reviewer") == []

    gate.grant("reviewer", "bob")
    assert gate.has_role("reviewer", "bob")


def test_revoke_missing_grant_is_noop(session, deterministic_clock):
    gate = SqlRoleGate(session, deterministic_clock)
    gate.revoke("reviewer", "nobody")

    assert not gate.has_role("reviewer", "nobody")


def test_holders_sorted(session, deterministic_clock):
    gate = SqlRoleGate(session, deterministic_clock)
    for name in ("carol", "alice", "bob"):
        gate.grant("reviewer", name)

    assert gate.holders("reviewer") == ["alice", "bob", "carol"]


def test_grants_are_logged(session, deterministic_clock, captured_logs):
    gate = SqlRoleGate(session, deterministic_clock)
    gate.grant("reviewer", "bob", granted_by="root")
    gate.revoke("reviewer", "bob", revoked_by="root")

    messages = [r["message"] for r in captured_logs()]
    assert messages.count("role_granted") == 1
    assert messages.count("role_revoked") == 1
