"""
Expense workflow types (``expense_kernel.domain.workflow``).

Responsibility
--------------
The closed enumerations of the approval process and the state machine
that connects them.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``ExpenseStatus`` and ``DecisionVerdict`` are separate types: an
  approval record can never hold ``pending``.
* ``EXPENSE_TRANSITIONS`` is the only source of legal status changes.
  Terminal states have no outgoing edges.
* Single-approval-closes-the-case: the first recorded verdict fixes the
  expense's final status.  There is no intermediate "awaiting next
  approver" state.
"""

from __future__ import annotations

from enum import Enum


class ExpenseStatus(str, Enum):
    """Workflow position of an expense."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DecisionVerdict(str, Enum):
    """An approver's verdict.  Deliberately has no PENDING member."""

    APPROVED = "approved"
    REJECTED = "rejected"


class UserRole(str, Enum):
    """Closed set of user roles."""

    EMPLOYEE = "employee"
    MANAGER = "manager"
    ADMIN = "admin"


INITIAL_STATUS = ExpenseStatus.PENDING

TERMINAL_STATUSES: frozenset[ExpenseStatus] = frozenset({
    ExpenseStatus.APPROVED,
    ExpenseStatus.REJECTED,
})

EXPENSE_TRANSITIONS: dict[tuple[ExpenseStatus, DecisionVerdict], ExpenseStatus] = {
    (ExpenseStatus.PENDING, DecisionVerdict.APPROVED): ExpenseStatus.APPROVED,
    (ExpenseStatus.PENDING, DecisionVerdict.REJECTED): ExpenseStatus.REJECTED,
}


def is_terminal(status: ExpenseStatus) -> bool:
    return status in TERMINAL_STATUSES


def next_status(current: ExpenseStatus, verdict: DecisionVerdict) -> ExpenseStatus | None:
    """Return the status reached by ``verdict`` from ``current``.

    Returns None when no edge exists (every terminal state).
    """
    return EXPENSE_TRANSITIONS.get((current, verdict))


def status_for_verdict(verdict: DecisionVerdict) -> ExpenseStatus:
    """The expense status a verdict closes the case with."""
    return ExpenseStatus(verdict.value)


def parse_verdict(value: DecisionVerdict | str) -> DecisionVerdict | None:
    """Coerce caller input into a verdict; None if outside the closed set.

    Accepts enum members and their string values, case-insensitively.
    ``"pending"`` is never a verdict.
    """
    if isinstance(value, DecisionVerdict):
        return value
    if isinstance(value, ExpenseStatus):
        value = value.value
    if not isinstance(value, str):
        return None
    try:
        return DecisionVerdict(value.strip().lower())
    except ValueError:
        return None
