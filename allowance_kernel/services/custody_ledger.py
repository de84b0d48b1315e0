"""
SqlCustodyLedger -- the custodial pool that pays approved claims.

Responsibility:
    Tracks the available balance of one named custody account, accepts
    deposits from the external funding path, and performs transfers to
    claimants.

Architecture position:
    Kernel > Services.  Implements the ``CustodyLedger`` port.

Invariants enforced:
    - Atomic transfer: the account row is locked (``SELECT ... FOR
      UPDATE``), the balance re-checked, debited and the movement recorded
      in one step.  Either the full amount moves or nothing does.
    - Locked reads: ``balance`` takes the same row lock, so a balance check
      and the transfer that follows it in one transaction cannot be
      interleaved with another session's payout.
    - balance >= 0 at all times.
    - Every balance change has an append-only ``custody_movements`` row.

Failure modes:
    - InsufficientFundsError when the balance is below the amount.
    - InvalidFundingAmountError on zero/negative deposits.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from allowance_kernel.domain.application import TransferReceipt, validate_amount
from allowance_kernel.domain.clock import Clock, SystemClock
from allowance_kernel.exceptions import (
    InsufficientFundsError,
    InvalidAmountError,
    InvalidFundingAmountError,
)
from allowance_kernel.logging_config import get_logger
from allowance_kernel.models.custody import CustodyAccountModel, CustodyMovementModel

logger = get_logger("services.custody_ledger")

DEFAULT_CUSTODY_ACCOUNT = "pool"


class SqlCustodyLedger:
    """Persistent custodial pool.

    The account row is created lazily with a zero balance on first use.
    """

    def __init__(
        self,
        session: Session,
        account: str = DEFAULT_CUSTODY_ACCOUNT,
        clock: Clock | None = None,
    ):
        self._session = session
        self._account = account
        self._clock = clock or SystemClock()

    @property
    def account(self) -> str:
        return self._account

    def _load_account(self, for_update: bool = False) -> CustodyAccountModel:
        stmt = select(CustodyAccountModel).where(CustodyAccountModel.name == self._account)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        model = self._session.execute(stmt).scalar_one_or_none()

        if model is None:
            model = CustodyAccountModel(name=self._account, balance=0)
            self._session.add(model)
            self._session.flush()
        return model

    def balance(self) -> int:
        """
        Current balance, read under a row lock.

        The lock is held until the caller's transaction ends, so a claim
        that checks the balance and then transfers sees no deposit or
        payout from another session in between.
        """
        model = self._session.execute(
            select(CustodyAccountModel)
            .where(CustodyAccountModel.name == self._account)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return model.balance if model is not None else 0

    def fund(self, amount: int, funded_by: str) -> int:
        """Deposit ``amount`` into the pool; returns the new balance."""
        try:
            validate_amount(amount)
        except InvalidAmountError:
            raise InvalidFundingAmountError(amount) from None
        if amount == 0:
            raise InvalidFundingAmountError(amount)

        model = self._load_account(for_update=True)
        model.balance += amount
        self._session.add(
            CustodyMovementModel(
                account=self._account,
                direction="deposit",
                counterparty=funded_by,
                amount=amount,
                balance_after=model.balance,
                occurred_at=self._clock.now(),
            )
        )
        self._session.flush()

        logger.info(
            "custody_funded",
            extra={
                "account": self._account,
                "funded_by": funded_by,
                "amount": amount,
                "balance_after": model.balance,
            },
        )
        return model.balance

    def transfer(self, to: str, amount: int) -> TransferReceipt:
        """Move ``amount`` from the pool to ``to``."""
        validate_amount(amount)

        model = self._load_account(for_update=True)
        if model.balance < amount:
            raise InsufficientFundsError(model.balance, amount, self._account)

        model.balance -= amount
        self._session.add(
            CustodyMovementModel(
                account=self._account,
                direction="transfer",
                counterparty=to,
                amount=amount,
                balance_after=model.balance,
                occurred_at=self._clock.now(),
            )
        )
        self._session.flush()

        logger.info(
            "custody_transferred",
            extra={
                "account": self._account,
                "recipient": to,
                "amount": amount,
                "balance_after": model.balance,
            },
        )
        return TransferReceipt(
            account=self._account,
            recipient=to,
            amount=amount,
            balance_after=model.balance,
        )

    def reconciles(self) -> bool:
        """True when the stored balance equals deposits minus transfers."""
        rows = self._session.execute(
            select(CustodyMovementModel.direction, CustodyMovementModel.amount)
            .where(CustodyMovementModel.account == self._account)
        ).all()
        net = sum(amount if direction == "deposit" else -amount for direction, amount in rows)
        return net == self.balance()
