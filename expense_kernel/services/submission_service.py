"""
SubmissionService -- create, amend and withdraw expenses.

Responsibility:
    The submitter's side of the workflow.  New expenses start Pending at
    version 1; while Pending their submitter may amend them (bumping the
    version) or withdraw them (deleting the row).

Architecture position:
    Kernel > Services.  Works only through the entity store.

Invariants enforced:
    - Only the submitter may amend or withdraw, and only while Pending.
    - Amounts are positive and stored with two decimal places.
    - Currency is a three-letter uppercase code.
    - ``expense_date`` is a calendar date no later than the clock's UTC
      today; it defaults to that day.
    - An amend bumps ``version``, so a decision prepared against the old
      version loses with InvalidStateError.
    - An expense with approval history is never deleted.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from uuid import UUID, uuid4

from expense_kernel.domain.clock import Clock
from expense_kernel.domain.dtos import ExpenseSnapshot
from expense_kernel.domain.store import EntityStore
from expense_kernel.domain.workflow import INITIAL_STATUS, ExpenseStatus
from expense_kernel.exceptions import InvalidExpenseError, InvalidStateError
from expense_kernel.logging_config import get_logger

logger = get_logger("services.submission")

_CENT = Decimal("0.01")
_AMENDABLE_FIELDS = frozenset({"amount", "currency", "category", "description", "expense_date"})


def _normalize_amount(amount: Decimal | int | str, expense_id: str | None = None) -> Decimal:
    if isinstance(amount, float):
        raise InvalidExpenseError("amount must be a Decimal, int or string, not float", expense_id)
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise InvalidExpenseError(f"amount {amount!r} is not a number", expense_id) from None
    if not value.is_finite():
        raise InvalidExpenseError(f"amount {amount!r} is not finite", expense_id)
    value = value.quantize(_CENT, rounding=ROUND_HALF_UP)
    if value <= 0:
        raise InvalidExpenseError("amount must be greater than zero", expense_id)
    return value


def _normalize_currency(currency: str, expense_id: str | None = None) -> str:
    code = (currency or "").strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise InvalidExpenseError(f"currency {currency!r} is not a 3-letter code", expense_id)
    return code


def _normalize_category(category: str, expense_id: str | None = None) -> str:
    value = (category or "").strip()
    if not value:
        raise InvalidExpenseError("category is required", expense_id)
    return value


def _normalize_expense_date(
    value: date | str, today: date, expense_id: str | None = None,
) -> date:
    if isinstance(value, datetime):
        raise InvalidExpenseError("expense_date must be a date, not a datetime", expense_id)
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value.strip())
        except ValueError:
            raise InvalidExpenseError(
                f"expense_date {value!r} is not an ISO date", expense_id,
            ) from None
    if not isinstance(value, date):
        raise InvalidExpenseError(
            f"expense_date must be a date, not {type(value).__name__}", expense_id,
        )
    if value > today:
        raise InvalidExpenseError(
            f"expense_date {value.isoformat()} is in the future", expense_id,
        )
    return value


class SubmissionService:
    """Submitter operations on expenses."""

    def __init__(
        self,
        store: EntityStore,
        clock: Clock,
        default_currency: str = "USD",
    ):
        self._store = store
        self._clock = clock
        self._default_currency = _normalize_currency(default_currency)

    def submit(
        self,
        submitter_id: UUID,
        amount: Decimal | int | str,
        category: str,
        description: str = "",
        currency: str | None = None,
        expense_date: date | str | None = None,
    ) -> ExpenseSnapshot:
        """Create a Pending expense for ``submitter_id``.

        ``expense_date`` defaults to the current UTC day.
        """
        submitter = self._store.read_user(submitter_id)
        now = self._clock.now()
        today = now.date()

        expense = self._store.create_expense(
            ExpenseSnapshot(
                expense_id=uuid4(),
                submitter_id=submitter.user_id,
                submitter_department=submitter.department,
                amount=_normalize_amount(amount),
                currency=_normalize_currency(currency or self._default_currency),
                category=_normalize_category(category),
                description=description or "",
                expense_date=_normalize_expense_date(
                    today if expense_date is None else expense_date, today,
                ),
                status=INITIAL_STATUS,
                version=1,
                created_at=now,
                updated_at=now,
            )
        )

        logger.info(
            "expense_submitted",
            extra={
                "expense_id": str(expense.expense_id),
                "actor_id": str(submitter.user_id),
                "amount": str(expense.amount),
                "currency": expense.currency,
                "category": expense.category,
                "expense_date": expense.expense_date,
            },
        )
        return expense

    def amend(self, expense_id: UUID, actor_id: UUID, **changes) -> ExpenseSnapshot:
        """Change amount, currency, category, description or date of a Pending expense."""
        unknown = set(changes) - _AMENDABLE_FIELDS
        if unknown:
            raise InvalidExpenseError(
                f"fields cannot be amended: {sorted(unknown)}", str(expense_id),
            )

        current = self._load_own_pending(expense_id, actor_id, "amend")
        eid = str(expense_id)

        values = {}
        if "amount" in changes:
            values["amount"] = _normalize_amount(changes["amount"], eid)
        if "currency" in changes:
            values["currency"] = _normalize_currency(changes["currency"], eid)
        if "category" in changes:
            values["category"] = _normalize_category(changes["category"], eid)
        if "description" in changes:
            values["description"] = changes["description"] or ""
        if "expense_date" in changes:
            values["expense_date"] = _normalize_expense_date(
                changes["expense_date"], self._clock.now().date(), eid,
            )

        updated = replace(
            current,
            version=current.version + 1,
            updated_at=self._clock.now(),
            **values,
        )
        if not self._store.write_expense(
            updated,
            expected_version=current.version,
            expected_status=ExpenseStatus.PENDING,
        ):
            raise InvalidStateError(
                eid, current.status.value, "Expense changed while being amended",
            )

        logger.info(
            "expense_amended",
            extra={
                "expense_id": eid,
                "actor_id": str(actor_id),
                "fields": sorted(values),
                "version": updated.version,
            },
        )
        return updated

    def withdraw(self, expense_id: UUID, actor_id: UUID) -> None:
        """Delete a Pending expense that has no approval history."""
        current = self._load_own_pending(expense_id, actor_id, "withdraw")
        eid = str(expense_id)

        if self._store.list_approvals(expense_id):
            raise InvalidStateError(
                eid, current.status.value, "Expense has approval history",
            )
        if not self._store.delete_expense(expense_id, expected_version=current.version):
            raise InvalidStateError(
                eid, current.status.value, "Expense changed while being withdrawn",
            )

        logger.info(
            "expense_withdrawn",
            extra={"expense_id": eid, "actor_id": str(actor_id)},
        )

    def _load_own_pending(self, expense_id: UUID, actor_id: UUID, action: str) -> ExpenseSnapshot:
        current = self._store.read_expense_for_update(expense_id)
        if current.submitter_id != actor_id:
            raise InvalidExpenseError(
                f"only the submitter may {action} this expense", str(expense_id),
            )
        if current.status is not ExpenseStatus.PENDING:
            raise InvalidStateError(
                str(expense_id),
                current.status.value,
                f"Cannot {action} an expense that is no longer pending",
            )
        return current
