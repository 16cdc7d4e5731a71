"""
Tests for TransitionEngine -- decisions on pending expenses.

Covers:
- approve / reject happy paths: status, version, timestamps, one approval
- decision validity: strings coerced, "pending" and junk refused
- state: terminal snapshot, row decided since the snapshot, row amended
  since the snapshot
- authorization: self-approval, department mismatch, approver demoted
  between read and decision
- a conditional write that matches no row writes no approval
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from expense_kernel.domain.workflow import DecisionVerdict, ExpenseStatus, UserRole
from expense_kernel.exceptions import (
    InvalidDecisionError,
    InvalidStateError,
    UnauthorizedApproverError,
)
from expense_kernel.selectors.audit_trail import record_hash_matches
from expense_kernel.services.entity_store import SqlEntityStore
from expense_kernel.services.transition_engine import TransitionEngine


@pytest.fixture
def engine(store, deterministic_clock):
    return TransitionEngine(store, deterministic_clock)


@pytest.fixture
def sales(make_user):
    """Sales employee and manager plus a Finance admin."""
    return {
        "employee": make_user(UserRole.EMPLOYEE, "Sales"),
        "manager": make_user(UserRole.MANAGER, "Sales"),
        "admin": make_user(UserRole.ADMIN, "Finance"),
    }


class TestDecide:
    """Successful decisions."""

    def test_manager_approves_department_expense(
        self, engine, store, sales, make_expense, deterministic_clock,
    ):
        expense = make_expense(sales["employee"])
        deterministic_clock.advance(60)

        outcome = engine.decide(expense, sales["manager"], DecisionVerdict.APPROVED, "fine")

        assert outcome.expense.status is ExpenseStatus.APPROVED
        assert outcome.expense.version == expense.version + 1
        assert outcome.expense.updated_at == deterministic_clock.now()
        assert outcome.approval.verdict is DecisionVerdict.APPROVED
        assert outcome.approval.approver_id == sales["manager"].user_id
        assert outcome.approval.comment == "fine"
        assert outcome.approval.created_at == deterministic_clock.now()
        assert record_hash_matches(outcome.approval)

        stored = store.read_expense(expense.expense_id)
        assert stored == outcome.expense
        assert store.list_approvals(expense.expense_id) == [outcome.approval]

    def test_admin_rejects_any_department(self, engine, store, make_user, make_expense, sales):
        expense = make_expense(make_user(UserRole.EMPLOYEE, "Engineering"))

        outcome = engine.decide(expense, sales["admin"], DecisionVerdict.REJECTED)

        assert outcome.expense.status is ExpenseStatus.REJECTED
        assert outcome.approval.comment is None
        assert store.read_expense(expense.expense_id).status is ExpenseStatus.REJECTED

    @pytest.mark.parametrize("raw, status", [("approved", ExpenseStatus.APPROVED), ("Rejected", ExpenseStatus.REJECTED)])
    def test_string_decisions_coerced(self, engine, sales, make_expense, raw, status):
        expense = make_expense(sales["employee"])
        assert engine.decide(expense, sales["manager"], raw).expense.status is status

    def test_decision_logged(self, engine, sales, make_expense, captured_logs):
        expense = make_expense(sales["employee"])
        engine.decide(expense, sales["manager"], DecisionVerdict.APPROVED)

        decided = [r for r in captured_logs() if r["event"] == "expense_decided"]
        assert len(decided) == 1
        assert decided[0]["expense_id"] == str(expense.expense_id)
        assert decided[0]["to_status"] == "approved"


class TestInvalidDecision:
    """Only approved / rejected are decisions."""

    @pytest.mark.parametrize("raw", ["pending", ExpenseStatus.PENDING, "escalate", ""])
    def test_refused_without_writes(self, engine, store, sales, make_expense, raw):
        expense = make_expense(sales["employee"])

        with pytest.raises(InvalidDecisionError):
            engine.decide(expense, sales["manager"], raw)

        assert store.read_expense(expense.expense_id) == expense
        assert store.list_approvals(expense.expense_id) == []

    def test_validity_checked_before_state(self, engine, sales, make_expense):
        expense = make_expense(sales["employee"], status=ExpenseStatus.APPROVED)
        with pytest.raises(InvalidDecisionError):
            engine.decide(expense, sales["manager"], "pending")


class TestInvalidState:
    """Terminal expenses and stale snapshots."""

    @pytest.mark.parametrize("status", [ExpenseStatus.APPROVED, ExpenseStatus.REJECTED])
    def test_terminal_snapshot_refused(self, engine, store, sales, make_expense, status):
        expense = make_expense(sales["employee"], status=status)

        with pytest.raises(InvalidStateError) as exc_info:
            engine.decide(expense, sales["admin"], DecisionVerdict.APPROVED)

        assert exc_info.value.current_status == status.value
        assert store.list_approvals(expense.expense_id) == []

    def test_state_checked_before_authorization(self, engine, sales, make_expense):
        expense = make_expense(sales["employee"], status=ExpenseStatus.APPROVED)
        with pytest.raises(InvalidStateError):
            engine.decide(expense, sales["employee"], DecisionVerdict.REJECTED)

    def test_second_decision_on_same_snapshot_loses(self, engine, store, sales, make_expense):
        """The loser read the expense while it was pending."""
        expense = make_expense(sales["employee"])
        engine.decide(expense, sales["manager"], DecisionVerdict.APPROVED)

        with pytest.raises(InvalidStateError):
            engine.decide(expense, sales["admin"], DecisionVerdict.REJECTED)

        assert store.read_expense(expense.expense_id).status is ExpenseStatus.APPROVED
        assert len(store.list_approvals(expense.expense_id)) == 1

    def test_amended_since_snapshot_loses(self, engine, store, sales, make_expense, deterministic_clock):
        expense = make_expense(sales["employee"])
        amended = replace(
            expense,
            amount=Decimal("999.00"),
            version=expense.version + 1,
            updated_at=deterministic_clock.tick(),
        )
        assert store.write_expense(
            amended, expected_version=expense.version, expected_status=ExpenseStatus.PENDING,
        )

        with pytest.raises(InvalidStateError, match="changed since it was read"):
            engine.decide(expense, sales["manager"], DecisionVerdict.APPROVED)

        assert store.read_expense(expense.expense_id).status is ExpenseStatus.PENDING
        assert store.list_approvals(expense.expense_id) == []


class TestUnauthorized:
    """Eligibility failures."""

    def test_self_approval(self, engine, store, make_user, make_expense):
        manager = make_user(UserRole.MANAGER, "Sales")
        expense = make_expense(manager)

        with pytest.raises(UnauthorizedApproverError) as exc_info:
            engine.decide(expense, manager, DecisionVerdict.APPROVED)

        assert exc_info.value.reason == "self_approval"
        assert store.read_expense(expense.expense_id).status is ExpenseStatus.PENDING

    def test_manager_other_department(self, engine, make_user, make_expense, sales):
        expense = make_expense(make_user(UserRole.EMPLOYEE, "Engineering"))
        with pytest.raises(UnauthorizedApproverError) as exc_info:
            engine.decide(expense, sales["manager"], DecisionVerdict.APPROVED)
        assert exc_info.value.reason == "department_mismatch"

    def test_employee_refused(self, engine, make_user, make_expense, sales):
        expense = make_expense(sales["employee"])
        colleague = make_user(UserRole.EMPLOYEE, "Sales")
        with pytest.raises(UnauthorizedApproverError):
            engine.decide(expense, colleague, DecisionVerdict.APPROVED)

    def test_demoted_after_read(self, engine, store, sales, make_expense):
        """Eligibility is re-checked against the stored approver."""
        expense = make_expense(sales["employee"])
        stale_profile = sales["manager"]
        store.update_user(replace(stale_profile, role=UserRole.EMPLOYEE))

        with pytest.raises(UnauthorizedApproverError) as exc_info:
            engine.decide(expense, stale_profile, DecisionVerdict.APPROVED)

        assert exc_info.value.reason == "role_cannot_approve"
        assert store.list_approvals(expense.expense_id) == []

    def test_refusal_logged(self, engine, sales, make_expense, captured_logs):
        expense = make_expense(sales["employee"])
        with pytest.raises(UnauthorizedApproverError):
            engine.decide(expense, sales["employee"], DecisionVerdict.APPROVED)

        refused = [r for r in captured_logs() if r["event"] == "decision_refused"]
        assert refused and refused[0]["reason"] == "self_approval"


class _LosingStore(SqlEntityStore):
    """Store whose conditional write always finds the row moved on."""

    def write_expense(self, expense, *, expected_version, expected_status):
        return False


class TestConditionalWrite:
    """The compare-and-set guards the race even past the locked re-read."""

    def test_failed_write_appends_nothing(self, session, sales, make_expense, deterministic_clock):
        expense = make_expense(sales["employee"])
        store = _LosingStore(session)
        engine = TransitionEngine(store, deterministic_clock)

        with pytest.raises(InvalidStateError, match="concurrent"):
            engine.decide(expense, sales["manager"], DecisionVerdict.APPROVED)

        assert store.list_approvals(expense.expense_id) == []
