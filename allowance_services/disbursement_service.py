"""
DisbursementService -- one transaction per registry call.

Responsibility:
    Hosts the allowance kernel as a standalone service.  Each call opens
    a session, wires the registry to its SQL collaborators, runs the
    operation and commits -- or rolls back on rejection.

Architecture position:
    Services -- imperative shell above ``allowance_kernel``.  Built from
    a ``RegistryConfig`` (``allowance_config.get_active_config()``).

Invariants enforced:
    - Full serialization: the registry lock is held from session open
      through commit, so no two calls interleave and every check-then-set
      is atomic for concurrent callers.
    - Rejections leave no partial state: the unit of work rolls back.
    - A transfer failure after the claim latch commits the latch before
      ``ClaimTransferFailedError`` propagates.

Failure modes:
    - Every ``AllowanceKernelError`` raised by the kernel propagates
      unchanged to the caller.
    - UnauthorizedError from ``grant_role``/``revoke_role`` when the
      granting principal is not an administrator.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from allowance_config.schema import RegistryConfig
from allowance_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from allowance_kernel.db.immutability import register_immutability_listeners
from allowance_kernel.domain.application import (
    Application,
    ApplicationStatus,
    LifecycleEvent,
)
from allowance_kernel.domain.clock import Clock, SystemClock
from allowance_kernel.domain.ports import EventSink
from allowance_kernel.exceptions import ClaimTransferFailedError, UnauthorizedError
from allowance_kernel.logging_config import configure_logging, get_logger
from allowance_kernel.selectors.application_selector import ApplicationSelector
from allowance_kernel.services.application_registry import (
    REGISTRY_LOCK,
    ApplicationRegistry,
)
from allowance_kernel.services.custody_ledger import SqlCustodyLedger
from allowance_kernel.services.event_recorder import EventRecorder
from allowance_kernel.services.event_sinks import CompositeEventSink, LoggingEventSink
from allowance_kernel.services.role_gate import SqlRoleGate

logger = get_logger("services.disbursement")


class DisbursementService:
    """
    Unit-of-work facade over ``ApplicationRegistry``.

    Contract:
        Each public method is one committed transaction.  The caller
        never sees a session.
    """

    def __init__(
        self,
        config: RegistryConfig,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        event_mirrors: tuple[EventSink, ...] | None = None,
        lock: Any = None,
    ):
        self._config = config
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._lock = lock if lock is not None else REGISTRY_LOCK
        self._mirrors = (LoggingEventSink(),) if event_mirrors is None else tuple(event_mirrors)

    @classmethod
    def from_config(
        cls,
        config: RegistryConfig,
        clock: Clock | None = None,
        create_schema: bool = True,
    ) -> DisbursementService:
        """Initialize the engine named by ``config`` and build a service on it."""
        configure_logging(level=config.log_level)
        engine = init_engine_from_url(config.database_url)
        if create_schema:
            create_tables(engine)
        register_immutability_listeners()
        logger.info(
            "disbursement_service_started",
            extra={
                "config_id": config.config_id,
                "required_approvals": config.required_approvals,
                "custody_account": config.custody_account,
            },
        )
        return cls(config, get_session_factory(), clock=clock)

    @property
    def config(self) -> RegistryConfig:
        return self._config

    # =========================================================================
    # Unit of work
    # =========================================================================

    @contextmanager
    def _unit_of_work(self) -> Generator[Session, None, None]:
        with self._lock:
            session = self._session_factory()
            try:
                yield session
                session.commit()
            except ClaimTransferFailedError:
                self._commit_latch(session)
                raise
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    @staticmethod
    def _commit_latch(session: Session) -> None:
        try:
            session.commit()
        except SQLAlchemyError:
            logger.critical("claim_latch_commit_failed", exc_info=True)
            session.rollback()

    def _ledger(self, session: Session) -> SqlCustodyLedger:
        return SqlCustodyLedger(session, self._config.custody_account, self._clock)

    def _registry(self, session: Session) -> ApplicationRegistry:
        return ApplicationRegistry(
            session,
            role_gate=SqlRoleGate(session, self._clock),
            custody=self._ledger(session),
            events=CompositeEventSink(EventRecorder(session, self._clock), *self._mirrors),
            required_approvals=self._config.required_approvals,
            clock=self._clock,
            reviewer_role=self._config.reviewer_role,
            lock=self._lock,
        )

    def _require_admin(self, gate: SqlRoleGate, principal: str | None) -> None:
        # None is the trusted bootstrap path used at initialization.
        if principal is not None and not gate.has_role(self._config.admin_role, principal):
            logger.warning("role_administration_unauthorized")
            raise UnauthorizedError(self._config.admin_role, principal)

    # =========================================================================
    # Registry operations
    # =========================================================================

    def submit(self, applicant: str, info: str, amount: int) -> int:
        with self._unit_of_work() as session:
            return self._registry(session).submit(applicant, info, amount)

    def verify(self, application_id: int, caller: str) -> None:
        with self._unit_of_work() as session:
            self._registry(session).verify(application_id, caller)

    def sign(self, application_id: int, caller: str) -> None:
        with self._unit_of_work() as session:
            self._registry(session).sign(application_id, caller)

    def claim(self, application_id: int, caller: str) -> int:
        with self._unit_of_work() as session:
            return self._registry(session).claim(application_id, caller)

    def get_application(self, application_id: int) -> Application:
        with self._unit_of_work() as session:
            return self._registry(session).get_application(application_id)

    def application_count(self) -> int:
        with self._unit_of_work() as session:
            return self._registry(session).application_count()

    def applications_by_status(self, status: ApplicationStatus) -> list[Application]:
        with self._unit_of_work() as session:
            return ApplicationSelector(session).list_by_status(status)

    # =========================================================================
    # Custody
    # =========================================================================

    def fund(self, amount: int, funded_by: str) -> int:
        """External deposit path; returns the new pool balance."""
        with self._unit_of_work() as session:
            return self._ledger(session).fund(amount, funded_by)

    def balance(self) -> int:
        with self._unit_of_work() as session:
            return self._ledger(session).balance()

    # =========================================================================
    # Roles
    # =========================================================================

    def grant_role(self, role: str, identity: str, granted_by: str | None = None) -> None:
        """Grant ``role``; ``granted_by`` must be an administrator when given."""
        with self._unit_of_work() as session:
            gate = SqlRoleGate(session, self._clock)
            self._require_admin(gate, granted_by)
            gate.grant(role, identity, granted_by)

    def revoke_role(self, role: str, identity: str, revoked_by: str | None = None) -> None:
        with self._unit_of_work() as session:
            gate = SqlRoleGate(session, self._clock)
            self._require_admin(gate, revoked_by)
            gate.revoke(role, identity, revoked_by)

    def has_role(self, role: str, identity: str) -> bool:
        with self._unit_of_work() as session:
            return SqlRoleGate(session, self._clock).has_role(role, identity)

    # =========================================================================
    # Audit
    # =========================================================================

    def events_for(self, application_id: int) -> list[LifecycleEvent]:
        with self._unit_of_work() as session:
            return EventRecorder(session, self._clock).events_for(application_id)

    def validate_event_chain(self) -> bool:
        with self._unit_of_work() as session:
            return EventRecorder(session, self._clock).validate_chain()
