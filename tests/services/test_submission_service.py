"""
Tests for SubmissionService -- submit, amend, withdraw.

Covers:
- submit: pending at version 1, department captured, amount/currency rules
- expense_date: defaults to today, never in the future, amendable
- amend: submitter only, pending only, bumps version, stale decisions lose
- withdraw: submitter only, pending only, deletes the expense
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from expense_kernel.domain.workflow import DecisionVerdict, ExpenseStatus
from expense_kernel.exceptions import (
    ExpenseNotFoundError,
    InvalidExpenseError,
    InvalidStateError,
    UserNotFoundError,
)


class TestSubmit:
    """New expenses."""

    def test_new_expense_is_pending(self, workflow, org, deterministic_clock):
        expense = workflow.submit(
            org.sales_employee.user_id, Decimal("42.5"), " Meals ", "Team lunch", "eur",
        )

        assert expense.status is ExpenseStatus.PENDING
        assert expense.version == 1
        assert expense.amount == Decimal("42.50")
        assert expense.currency == "EUR"
        assert expense.category == "Meals"
        assert expense.submitter_department == "Sales"
        assert expense.created_at == deterministic_clock.now()
        assert workflow.get_expense(expense.expense_id) == expense

    def test_default_currency(self, workflow, org):
        expense = workflow.submit(org.sales_employee.user_id, "10", "Books")
        assert expense.currency == "USD"

    def test_amount_rounded_to_cents(self, workflow, org):
        expense = workflow.submit(org.sales_employee.user_id, "10.005", "Books")
        assert expense.amount == Decimal("10.01")

    @pytest.mark.parametrize("amount", [0, "-5", "0.001", "abc", "NaN", 12.5])
    def test_invalid_amount(self, workflow, org, amount):
        with pytest.raises(InvalidExpenseError):
            workflow.submit(org.sales_employee.user_id, amount, "Books")

    @pytest.mark.parametrize("currency", ["US", "DOLLARS", "12$"])
    def test_invalid_currency(self, workflow, org, currency):
        with pytest.raises(InvalidExpenseError):
            workflow.submit(org.sales_employee.user_id, "5", "Books", currency=currency)

    def test_blank_category(self, workflow, org):
        with pytest.raises(InvalidExpenseError, match="category"):
            workflow.submit(org.sales_employee.user_id, "5", "   ")

    def test_unknown_submitter(self, workflow, db_engine):
        with pytest.raises(UserNotFoundError):
            workflow.submit(uuid4(), "5", "Books")

    def test_department_snapshot_survives_transfer(self, workflow, org):
        expense = workflow.submit(org.sales_employee.user_id, "5", "Books")
        workflow.change_profile(org.admin.user_id, org.sales_employee.user_id, department="Engineering")

        assert workflow.get_expense(expense.expense_id).submitter_department == "Sales"
        assert workflow.can_approve(org.sales_manager.user_id, expense.expense_id)


class TestExpenseDate:
    """The day the cost was incurred."""

    def test_defaults_to_clock_day(self, workflow, org, deterministic_clock):
        expense = workflow.submit(org.sales_employee.user_id, "12.00", "Taxi")
        assert expense.expense_date == deterministic_clock.now().date()

    def test_past_date_and_iso_string(self, workflow, org):
        expense = workflow.submit(
            org.sales_employee.user_id, "12.00", "Taxi", expense_date="2023-12-18",
        )
        assert expense.expense_date == date(2023, 12, 18)
        assert workflow.get_expense(expense.expense_id).expense_date == date(2023, 12, 18)

    def test_future_date_refused(self, workflow, org):
        with pytest.raises(InvalidExpenseError, match="future"):
            workflow.submit(
                org.sales_employee.user_id, "12.00", "Taxi", expense_date=date(2024, 1, 2),
            )

    def test_today_is_the_utc_day(self, workflow, org, deterministic_clock):
        deterministic_clock.set_time(datetime(2024, 3, 31, 23, 59, 59, tzinfo=timezone.utc))
        expense = workflow.submit(
            org.sales_employee.user_id, "12.00", "Taxi", expense_date=date(2024, 3, 31),
        )
        assert expense.expense_date == date(2024, 3, 31)

        deterministic_clock.tick()
        later = workflow.submit(
            org.sales_employee.user_id, "12.00", "Taxi", expense_date=date(2024, 4, 1),
        )
        assert later.expense_date == date(2024, 4, 1)

    @pytest.mark.parametrize(
        "value",
        ["18/12/2023", "", datetime(2023, 12, 18, 9, 0, tzinfo=timezone.utc), 20231218],
        ids=["not_iso", "empty", "datetime", "int"],
    )
    def test_malformed_date_refused(self, workflow, org, value):
        with pytest.raises(InvalidExpenseError, match="expense_date"):
            workflow.submit(org.sales_employee.user_id, "12.00", "Taxi", expense_date=value)

    def test_amend_date(self, workflow, org):
        expense = workflow.submit(org.sales_employee.user_id, "12.00", "Taxi")
        amended = workflow.amend(
            expense.expense_id, org.sales_employee.user_id, expense_date="2023-11-30",
        )
        assert amended.expense_date == date(2023, 11, 30)
        assert amended.version == 2

    def test_amend_to_future_refused(self, workflow, org):
        expense = workflow.submit(org.sales_employee.user_id, "12.00", "Taxi")
        with pytest.raises(InvalidExpenseError, match="future"):
            workflow.amend(
                expense.expense_id, org.sales_employee.user_id, expense_date=date(2030, 1, 1),
            )
        assert workflow.get_expense(expense.expense_id).version == 1


class TestAmend:
    """Changes while pending."""

    def test_amend_bumps_version(self, workflow, org, deterministic_clock):
        expense = workflow.submit(org.sales_employee.user_id, "20.00", "Taxi")
        deterministic_clock.advance(30)

        amended = workflow.amend(
            expense.expense_id, org.sales_employee.user_id, amount="25.00", description="With tip",
        )

        assert amended.version == 2
        assert amended.amount == Decimal("25.00")
        assert amended.description == "With tip"
        assert amended.updated_at == deterministic_clock.now()
        assert amended.created_at == expense.created_at
        assert workflow.get_expense(expense.expense_id) == amended

    def test_decision_on_pre_amend_snapshot_loses(self, workflow, org):
        expense = workflow.submit(org.sales_employee.user_id, "20.00", "Taxi")
        workflow.amend(expense.expense_id, org.sales_employee.user_id, amount="2000.00")

        with pytest.raises(InvalidStateError):
            workflow.decide(expense, org.sales_manager, DecisionVerdict.APPROVED)
        assert workflow.history(expense.expense_id) == ()

    def test_only_submitter_amends(self, workflow, org):
        expense = workflow.submit(org.sales_employee.user_id, "20.00", "Taxi")
        with pytest.raises(InvalidExpenseError, match="submitter"):
            workflow.amend(expense.expense_id, org.sales_manager.user_id, amount="1.00")

    def test_terminal_not_amendable(self, workflow, org):
        expense = workflow.submit(org.sales_employee.user_id, "20.00", "Taxi")
        workflow.decide(expense, org.sales_manager, DecisionVerdict.APPROVED)

        with pytest.raises(InvalidStateError):
            workflow.amend(expense.expense_id, org.sales_employee.user_id, amount="1.00")

    def test_unknown_field(self, workflow, org):
        expense = workflow.submit(org.sales_employee.user_id, "20.00", "Taxi")
        with pytest.raises(InvalidExpenseError, match="status"):
            workflow.amend(expense.expense_id, org.sales_employee.user_id, status="approved")


class TestWithdraw:
    """Deleting a pending expense."""

    def test_withdraw_deletes(self, workflow, org):
        expense = workflow.submit(org.sales_employee.user_id, "20.00", "Taxi")
        workflow.withdraw(expense.expense_id, org.sales_employee.user_id)

        with pytest.raises(ExpenseNotFoundError):
            workflow.get_expense(expense.expense_id)

    def test_only_submitter_withdraws(self, workflow, org):
        expense = workflow.submit(org.sales_employee.user_id, "20.00", "Taxi")
        with pytest.raises(InvalidExpenseError):
            workflow.withdraw(expense.expense_id, org.admin.user_id)

    def test_decided_expense_kept(self, workflow, org):
        expense = workflow.submit(org.sales_employee.user_id, "20.00", "Taxi")
        workflow.decide(expense, org.sales_manager, DecisionVerdict.REJECTED)

        with pytest.raises(InvalidStateError):
            workflow.withdraw(expense.expense_id, org.sales_employee.user_id)
        assert workflow.get_expense(expense.expense_id).status is ExpenseStatus.REJECTED
