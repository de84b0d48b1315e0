"""
SqlRoleGate -- role registry backed by the ``role_grants`` table.

Responsibility:
    Answers "does principal P hold role R?" for the application registry,
    and provides the grant/revoke path used at initialization and by
    administrative tooling.

Architecture position:
    Kernel > Services.  Implements the ``RoleGate`` port.

Invariants enforced:
    - ``has_role`` is a pure query with no side effects.
    - Granting an active grant and revoking a missing one are no-ops.
    - Revocation keeps the row (revoked_at/revoked_by) for audit.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from allowance_kernel.domain.clock import Clock, SystemClock
from allowance_kernel.logging_config import get_logger
from allowance_kernel.models.role_grant import RoleGrantModel

logger = get_logger("services.role_gate")


class SqlRoleGate:
    """Persistent role registry."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def _load(self, role: str, identity: str) -> RoleGrantModel | None:
        return self._session.execute(
            select(RoleGrantModel).where(
                RoleGrantModel.role == role,
                RoleGrantModel.identity == identity,
            )
        ).scalar_one_or_none()

    def has_role(self, role: str, identity: str) -> bool:
        grant = self._load(role, identity)
        return grant is not None and grant.is_active

    def grant(self, role: str, identity: str, granted_by: str | None = None) -> None:
        existing = self._load(role, identity)
        if existing is not None and existing.is_active:
            return

        now = self._clock.now()
        if existing is None:
            self._session.add(
                RoleGrantModel(
                    role=role,
                    identity=identity,
                    granted_by=granted_by,
                    granted_at=now,
                )
            )
        else:
            # Re-grant after revocation
            existing.granted_by = granted_by
            existing.granted_at = now
            existing.revoked_by = None
            existing.revoked_at = None
        self._session.flush()

        logger.info(
            "role_granted",
            extra={"role": role, "identity": identity, "granted_by": granted_by},
        )

    def revoke(self, role: str, identity: str, revoked_by: str | None = None) -> None:
        existing = self._load(role, identity)
        if existing is None or not existing.is_active:
            return

        existing.revoked_by = revoked_by
        existing.revoked_at = self._clock.now()
        self._session.flush()

        logger.info(
            "role_revoked",
            extra={"role": role, "identity": identity, "revoked_by": revoked_by},
        )

    def holders(self, role: str) -> list[str]:
        """Identities currently holding ``role``, sorted."""
        rows = self._session.execute(
            select(RoleGrantModel.identity).where(
                RoleGrantModel.role == role,
                RoleGrantModel.revoked_at.is_(None),
            ).order_by(RoleGrantModel.identity)
        ).scalars().all()
        return list(rows)
