"""
SqlEntityStore -- SQLAlchemy implementation of the entity store.

Responsibility:
    Durable create/read/update of users, expenses and approvals by
    identifier and by relationship, translating between ORM rows and the
    frozen domain DTOs.

Architecture position:
    Kernel > Services -- imperative shell.  Implements
    ``expense_kernel.domain.store.EntityStore``.

Invariants enforced:
    - Reads always hit the database (``populate_existing``), so a caller
      never sees a stale identity-map copy of a row another transaction
      changed.
    - ``write_expense`` is a conditional UPDATE: it only succeeds if the
      row is still at the version and status the writer read.  This is the
      compare-and-set that closes the decision race on every backend.
    - ``read_expense_for_update`` takes a row lock (SELECT ... FOR UPDATE)
      on PostgreSQL; SQLite serializes writers at the database level.
    - Approvals are only ever inserted.

Failure modes:
    - UserNotFoundError / ExpenseNotFoundError for unknown identifiers.
    - DuplicateUserError when a user write collides on the e-mail index.
    - sqlalchemy.exc.OperationalError on store faults (translated to
      StoreUnavailableError by ExpenseWorkflow).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError as SAIntegrityError
from sqlalchemy.orm import Session

from expense_kernel.domain.dtos import ApprovalRecord, ExpenseSnapshot, UserProfile
from expense_kernel.domain.workflow import ExpenseStatus
from expense_kernel.exceptions import DuplicateUserError, ExpenseNotFoundError, UserNotFoundError
from expense_kernel.logging_config import get_logger
from expense_kernel.models.approval import ApprovalModel
from expense_kernel.models.expense import ExpenseModel
from expense_kernel.models.user import EMAIL_INDEX_NAME, UserModel
from expense_kernel.services.base import BaseService

logger = get_logger("services.entity_store")


class SqlEntityStore(BaseService):
    """Entity store backed by a SQLAlchemy session.

    Contract:
        Every method runs inside the session's current transaction and
        flushes; none commits.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def _load_user_model(self, user_id: UUID) -> UserModel:
        model = self.session.execute(
            select(UserModel)
            .where(UserModel.id == user_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise UserNotFoundError(str(user_id))
        return model

    def read_user(self, user_id: UUID) -> UserProfile:
        return self._load_user_model(user_id).to_dto()

    def find_user_by_email(self, email: str) -> UserProfile | None:
        model = self.session.execute(
            select(UserModel).where(func.lower(UserModel.email) == email.lower())
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def create_user(self, profile: UserProfile) -> UserProfile:
        model = UserModel.from_dto(profile)
        self.session.add(model)
        self._flush_user(profile.email)
        return model.to_dto()

    def update_user(self, profile: UserProfile) -> UserProfile:
        model = self._load_user_model(profile.user_id)
        model.name = profile.name
        model.email = profile.email
        model.role = profile.role.value
        model.department = profile.department
        self._flush_user(profile.email)
        return model.to_dto()

    def _flush_user(self, email: str) -> None:
        """Flush a user write, reporting an e-mail collision as DuplicateUserError.

        The collision leaves the transaction unusable; the caller's unit of
        work must roll back.
        """
        try:
            self.session.flush()
        except SAIntegrityError as exc:
            if EMAIL_INDEX_NAME not in str(exc.orig):
                raise
            raise DuplicateUserError(email) from exc

    def delete_user(self, user_id: UUID) -> None:
        model = self._load_user_model(user_id)
        self.session.delete(model)
        self.session.flush()

    def count_references(self, user_id: UUID) -> tuple[int, int]:
        expenses = self.session.execute(
            select(func.count()).select_from(ExpenseModel).where(
                ExpenseModel.submitter_id == user_id,
            )
        ).scalar_one()
        approvals = self.session.execute(
            select(func.count()).select_from(ApprovalModel).where(
                ApprovalModel.approver_id == user_id,
            )
        ).scalar_one()
        return expenses, approvals

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    def _load_expense_model(self, expense_id: UUID, *, lock: bool = False) -> ExpenseModel:
        stmt = (
            select(ExpenseModel)
            .where(ExpenseModel.id == expense_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()
        model = self.session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise ExpenseNotFoundError(str(expense_id))
        return model

    def read_expense(self, expense_id: UUID) -> ExpenseSnapshot:
        return self._load_expense_model(expense_id).to_dto()

    def read_expense_for_update(self, expense_id: UUID) -> ExpenseSnapshot:
        return self._load_expense_model(expense_id, lock=True).to_dto()

    def create_expense(self, expense: ExpenseSnapshot) -> ExpenseSnapshot:
        model = ExpenseModel.from_dto(expense)
        self.session.add(model)
        self.session.flush()
        return model.to_dto()

    def write_expense(
        self,
        expense: ExpenseSnapshot,
        *,
        expected_version: int,
        expected_status: ExpenseStatus,
    ) -> bool:
        """Compare-and-set write of an expense.

        Returns:
            True if exactly one row was updated; False if the row moved on
            (different version or status) since the writer read it.

        Raises:
            ValueError: if ``expense.version`` is not ``expected_version + 1``.
        """
        if expense.version != expected_version + 1:
            raise ValueError(
                f"Expense write must advance version {expected_version} by one, "
                f"got {expense.version}"
            )

        result = self.session.execute(
            update(ExpenseModel)
            .where(
                ExpenseModel.id == expense.expense_id,
                ExpenseModel.version == expected_version,
                ExpenseModel.status == expected_status.value,
            )
            .values(
                amount=expense.amount,
                currency=expense.currency,
                category=expense.category,
                description=expense.description,
                expense_date=expense.expense_date,
                status=expense.status.value,
                version=expense.version,
                updated_at=expense.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        written = result.rowcount == 1

        logger.debug(
            "expense_write",
            extra={
                "expense_id": str(expense.expense_id),
                "expected_version": expected_version,
                "written": written,
            },
        )
        return written

    def delete_expense(self, expense_id: UUID, *, expected_version: int) -> bool:
        """Delete a pending expense if it is still at ``expected_version``."""
        result = self.session.execute(
            delete(ExpenseModel)
            .where(
                ExpenseModel.id == expense_id,
                ExpenseModel.version == expected_version,
                ExpenseModel.status == ExpenseStatus.PENDING.value,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def list_expenses(
        self,
        *,
        submitter_id: UUID | None = None,
        status: ExpenseStatus | None = None,
        created_before: datetime | None = None,
    ) -> list[ExpenseSnapshot]:
        stmt = select(ExpenseModel).execution_options(populate_existing=True)
        if submitter_id is not None:
            stmt = stmt.where(ExpenseModel.submitter_id == submitter_id)
        if status is not None:
            stmt = stmt.where(ExpenseModel.status == status.value)
        if created_before is not None:
            stmt = stmt.where(ExpenseModel.created_at < created_before)
        stmt = stmt.order_by(ExpenseModel.created_at, ExpenseModel.id)

        return [m.to_dto() for m in self.session.execute(stmt).scalars().all()]

    # ------------------------------------------------------------------
    # Approvals
    # ------------------------------------------------------------------

    def append_approval(self, record: ApprovalRecord) -> ApprovalRecord:
        model = ApprovalModel.from_dto(record)
        self.session.add(model)
        self.session.flush()
        return model.to_dto()

    def list_approvals(self, expense_id: UUID) -> list[ApprovalRecord]:
        models = self.session.execute(
            select(ApprovalModel)
            .where(ApprovalModel.expense_id == expense_id)
            .order_by(ApprovalModel.created_at, ApprovalModel.id)
            .execution_options(populate_existing=True)
        ).scalars().all()
        return [m.to_dto() for m in models]
