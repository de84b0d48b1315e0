"""
Module: allowance_kernel.models.custody
Responsibility: ORM persistence for the custodial pool and its movements.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - balance >= 0 (check constraint).  SqlCustodyLedger locks the account
      row before every debit so that check and decrement are one step.
    - Movements are append-only (listeners in db/immutability.py); the balance
      always equals the sum of its movements.
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Index,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from allowance_kernel.db.base import Base


class CustodyAccountModel(Base):
    """A named custodial balance."""

    __tablename__ = "custody_accounts"

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_custody_accounts_balance_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<CustodyAccount {self.name} balance={self.balance}>"


class CustodyMovementModel(Base):
    """A deposit into or a transfer out of a custody account."""

    __tablename__ = "custody_movements"

    __table_args__ = (
        CheckConstraint(
            "direction IN ('deposit', 'transfer')",
            name="ck_custody_movements_direction",
        ),
        CheckConstraint("amount >= 0", name="ck_custody_movements_amount_non_negative"),
        Index("ix_custody_movements_account", "account"),
    )

    account: Mapped[str] = mapped_column(String(100), nullable=False)
    direction: Mapped[str] = mapped_column(String(20), nullable=False)
    # Funder for deposits, recipient for transfers.
    counterparty: Mapped[str] = mapped_column(String(200), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_after: Mapped[int] = mapped_column(BigInteger, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<CustodyMovement {self.direction} {self.amount} "
            f"{self.account}<->{self.counterparty}>"
        )

