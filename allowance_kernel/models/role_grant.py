"""
Module: allowance_kernel.models.role_grant
Responsibility: ORM persistence for role grants consulted by SqlRoleGate.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE(role, identity): a principal holds a role at most once.
    - Revocation is a soft delete (revoked_at); the grant history stays.
"""

from datetime import datetime

from sqlalchemy import DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from allowance_kernel.db.base import Base


class RoleGrantModel(Base):
    """A named role held by a principal."""

    __tablename__ = "role_grants"

    __table_args__ = (
        UniqueConstraint("role", "identity", name="uq_role_grants_role_identity"),
        Index("ix_role_grants_identity", "identity"),
    )

    role: Mapped[str] = mapped_column(String(100), nullable=False)
    identity: Mapped[str] = mapped_column(String(200), nullable=False)
    granted_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    granted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    @property
    def is_active(self) -> bool:
        return self.revoked_at is None

    def __repr__(self) -> str:
        state = "active" if self.is_active else "revoked"
        return f"<RoleGrant {self.role} -> {self.identity} ({state})>"
