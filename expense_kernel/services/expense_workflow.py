"""
ExpenseWorkflow -- transactional facade over the approval core.

Responsibility:
    The kernel's public surface.  Every call runs as one unit of work:
    open a session, build the store/engine/selectors on it, run, commit.
    Any failure rolls back the whole unit, so a decision's status update
    and its approval record are written together or not at all.

Architecture position:
    Kernel > Services -- outermost kernel layer.  Owns commit/rollback
    (via ``session_scope``); everything below it only flushes.

Failure modes:
    - Domain errors (InvalidStateError, UnauthorizedApproverError, ...)
      propagate unchanged.
    - SQLAlchemy OperationalError, pool TimeoutError and invalidated
      connections become StoreUnavailableError with the original chained.
      Nothing is retried here.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from expense_kernel.db.engine import session_scope
from expense_kernel.domain.authorization import DEFAULT_POLICY, ApprovalPolicy, can_approve
from expense_kernel.domain.clock import Clock, SystemClock
from expense_kernel.domain.dtos import (
    ApprovalRecord,
    DecisionOutcome,
    ExpenseSnapshot,
    UserProfile,
)
from expense_kernel.domain.workflow import DecisionVerdict, ExpenseStatus, UserRole
from expense_kernel.exceptions import StoreUnavailableError
from expense_kernel.logging_config import LogContext, get_logger
from expense_kernel.selectors.audit_trail import AuditReport, AuditTrail
from expense_kernel.selectors.expense_selector import ExpenseSelector
from expense_kernel.services.directory_service import DirectoryService
from expense_kernel.services.entity_store import SqlEntityStore
from expense_kernel.services.submission_service import SubmissionService
from expense_kernel.services.transition_engine import TransitionEngine

logger = get_logger("services.expense_workflow")


class ExpenseWorkflow:
    """One-transaction-per-call entry point to the expense kernel.

    Args:
        session_factory: Source of sessions; each call gets a fresh one.
        clock: Timestamp source.  Defaults to the system clock.
        policy: Approval rule table.
        default_currency: Currency for submissions that do not name one.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        policy: ApprovalPolicy = DEFAULT_POLICY,
        default_currency: str = "USD",
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._policy = policy
        self._default_currency = default_currency

    @property
    def policy(self) -> ApprovalPolicy:
        return self._policy

    @contextmanager
    def _unit_of_work(self, operation: str) -> Iterator[SqlEntityStore]:
        try:
            with session_scope(self._session_factory) as session:
                yield SqlEntityStore(session)
        except (OperationalError, PoolTimeoutError) as exc:
            self._log_store_fault(operation, exc)
            raise StoreUnavailableError(operation, str(exc)) from exc
        except DBAPIError as exc:
            if not exc.connection_invalidated:
                raise
            self._log_store_fault(operation, exc)
            raise StoreUnavailableError(operation, str(exc)) from exc

    @staticmethod
    def _log_store_fault(operation: str, exc: Exception) -> None:
        logger.error(
            "store_unavailable",
            extra={"operation": operation, "error_type": type(exc).__name__},
        )

    # ------------------------------------------------------------------
    # Approval core
    # ------------------------------------------------------------------

    def can_approve(self, user_id: UUID, expense_id: UUID) -> bool:
        """Eligibility of ``user_id`` for the latest committed ``expense_id``."""
        with self._unit_of_work("can_approve") as store:
            user = store.read_user(user_id)
            expense = store.read_expense(expense_id)
            return can_approve(user, expense, self._policy)

    def decide(
        self,
        expense: ExpenseSnapshot,
        acting_user: UserProfile,
        decision: DecisionVerdict | str,
        comment: str | None = None,
    ) -> DecisionOutcome:
        """Approve or reject ``expense`` as read by the caller.

        The snapshot's version is checked against the stored row; if the
        expense changed in between, InvalidStateError is raised.
        """
        with LogContext.bind(
            operation="decide",
            actor_id=acting_user.user_id,
            expense_id=expense.expense_id,
        ):
            with self._unit_of_work("decide") as store:
                engine = TransitionEngine(store, self._clock, self._policy)
                return engine.decide(expense, acting_user, decision, comment)

    def history(self, expense_id: UUID) -> tuple[ApprovalRecord, ...]:
        with self._unit_of_work("history") as store:
            return AuditTrail(store).history(expense_id)

    def verify(self, expense_id: UUID) -> AuditReport:
        with self._unit_of_work("verify") as store:
            return AuditTrail(store).verify(expense_id)

    def assert_consistent(self, expense_id: UUID) -> AuditReport:
        with self._unit_of_work("assert_consistent") as store:
            return AuditTrail(store).assert_consistent(expense_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_expense(self, expense_id: UUID) -> ExpenseSnapshot:
        with self._unit_of_work("get_expense") as store:
            return store.read_expense(expense_id)

    def get_user(self, user_id: UUID) -> UserProfile:
        with self._unit_of_work("get_user") as store:
            return store.read_user(user_id)

    def pending_for_approver(self, user_id: UUID) -> list[ExpenseSnapshot]:
        with self._unit_of_work("pending_for_approver") as store:
            return ExpenseSelector(store, self._policy).pending_for_approver(user_id)

    def submitted_by(
        self,
        user_id: UUID,
        status: ExpenseStatus | None = None,
    ) -> list[ExpenseSnapshot]:
        with self._unit_of_work("submitted_by") as store:
            return ExpenseSelector(store, self._policy).submitted_by(user_id, status)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(
        self,
        submitter_id: UUID,
        amount: Decimal | int | str,
        category: str,
        description: str = "",
        currency: str | None = None,
        expense_date: date | str | None = None,
    ) -> ExpenseSnapshot:
        with LogContext.bind(operation="submit", actor_id=submitter_id):
            with self._unit_of_work("submit") as store:
                service = SubmissionService(store, self._clock, self._default_currency)
                return service.submit(
                    submitter_id, amount, category, description, currency, expense_date,
                )

    def amend(self, expense_id: UUID, actor_id: UUID, **changes) -> ExpenseSnapshot:
        with LogContext.bind(operation="amend", actor_id=actor_id, expense_id=expense_id):
            with self._unit_of_work("amend") as store:
                service = SubmissionService(store, self._clock, self._default_currency)
                return service.amend(expense_id, actor_id, **changes)

    def withdraw(self, expense_id: UUID, actor_id: UUID) -> None:
        with LogContext.bind(operation="withdraw", actor_id=actor_id, expense_id=expense_id):
            with self._unit_of_work("withdraw") as store:
                service = SubmissionService(store, self._clock, self._default_currency)
                service.withdraw(expense_id, actor_id)

    # ------------------------------------------------------------------
    # Directory
    # ------------------------------------------------------------------

    def register_user(
        self,
        name: str,
        email: str,
        role: UserRole | str,
        department: str,
    ) -> UserProfile:
        with self._unit_of_work("register_user") as store:
            return DirectoryService(store, self._clock).register(name, email, role, department)

    def change_profile(
        self,
        admin_id: UUID,
        user_id: UUID,
        role: UserRole | str | None = None,
        department: str | None = None,
    ) -> UserProfile:
        with LogContext.bind(operation="change_profile", actor_id=admin_id):
            with self._unit_of_work("change_profile") as store:
                return DirectoryService(store, self._clock).change_profile(
                    admin_id, user_id, role=role, department=department,
                )

    def remove_user(self, admin_id: UUID, user_id: UUID) -> None:
        with LogContext.bind(operation="remove_user", actor_id=admin_id):
            with self._unit_of_work("remove_user") as store:
                DirectoryService(store, self._clock).remove(admin_id, user_id)
