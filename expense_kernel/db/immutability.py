"""
ORM-Level Immutability Enforcement for Expenses.

===============================================================================
WHY THIS EXISTS
===============================================================================

Once an expense reaches a terminal status (approved / rejected) its content
is part of a closed decision.  The approval that closed it is frozen by the
listeners declared in models/approval.py; this module freezes the expense
side of the same decision.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database:

    session.flush()
         |
         v
    [before_update event] --> _check_expense_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_expense_delete() ---------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity      | When Immutable                   | Guard
------------|----------------------------------|------------------------------
Approval    | ALWAYS (from creation)           | models/approval.py listeners
Expense     | After status is terminal         | THIS FILE

===============================================================================
DESIGN DECISIONS
===============================================================================

1. The transition engine closes an expense with a version-checked UPDATE
   statement, not a flush of a loaded object, so the pending -> terminal
   write never passes through these listeners.  Any later ORM edit of a
   terminal expense does, and is rejected.

2. We check the status the row HAD (attribute history), not the status it
   is being given, so an edit that also rewrites the status is still caught.
"""

from sqlalchemy import event, inspect

from expense_kernel.domain.workflow import TERMINAL_STATUSES
from expense_kernel.exceptions import ImmutabilityViolationError
from expense_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_TERMINAL_VALUES = frozenset(s.value for s in TERMINAL_STATUSES)


def _previous_status(target) -> str:
    history = inspect(target).attrs.status.history
    if history.deleted:
        return history.deleted[0]
    return target.status


def _check_expense_immutability(mapper, connection, target):
    """Prevent any update to an expense that was already terminal."""
    previous = _previous_status(target)
    if previous not in _TERMINAL_VALUES:
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Expense",
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "status": previous,
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Expense",
        entity_id=str(target.id),
        reason=f"Expense is {previous} and can no longer be modified",
    )


def _check_expense_delete(mapper, connection, target):
    """Prevent deletion of a terminal expense."""
    previous = _previous_status(target)
    if previous not in _TERMINAL_VALUES:
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Expense",
            "entity_id": str(target.id),
            "operation": "DELETE",
            "status": previous,
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Expense",
        entity_id=str(target.id),
        reason=f"Expense is {previous} and cannot be deleted",
    )


def register_immutability_listeners():
    """
    Register the expense immutability listeners (idempotent).

    Call during application initialization, after models are imported and
    before any database operations begin.
    """
    from expense_kernel.models.expense import ExpenseModel

    if not event.contains(ExpenseModel, "before_update", _check_expense_immutability):
        event.listen(ExpenseModel, "before_update", _check_expense_immutability)
    if not event.contains(ExpenseModel, "before_delete", _check_expense_delete):
        event.listen(ExpenseModel, "before_delete", _check_expense_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the expense immutability listeners.

    WARNING: Only use this in tests that must corrupt data on purpose to
    verify detection.
    """
    from expense_kernel.models.expense import ExpenseModel

    _safe_remove_listener(ExpenseModel, "before_update", _check_expense_immutability)
    _safe_remove_listener(ExpenseModel, "before_delete", _check_expense_delete)
