"""
Module: expense_kernel.selectors.expense_selector
Responsibility: Approver queues and submitter listings.
Architecture position: Kernel > Selectors.  Read-only.
"""

from __future__ import annotations

from uuid import UUID

from expense_kernel.domain.authorization import (
    DEFAULT_POLICY,
    ApprovalPolicy,
    can_approve,
)
from expense_kernel.domain.dtos import ExpenseSnapshot
from expense_kernel.domain.store import EntityStore
from expense_kernel.domain.workflow import ExpenseStatus
from expense_kernel.selectors.base import BaseSelector


class ExpenseSelector(BaseSelector):
    """Expense listings filtered by who is asking."""

    def __init__(self, store: EntityStore, policy: ApprovalPolicy = DEFAULT_POLICY):
        super().__init__(store)
        self._policy = policy

    def pending_for_approver(self, user_id: UUID) -> list[ExpenseSnapshot]:
        """Pending expenses ``user_id`` may decide, oldest first."""
        user = self.store.read_user(user_id)
        pending = self.store.list_expenses(status=ExpenseStatus.PENDING)
        return [e for e in pending if can_approve(user, e, self._policy)]

    def submitted_by(
        self,
        user_id: UUID,
        status: ExpenseStatus | None = None,
    ) -> list[ExpenseSnapshot]:
        """Expenses submitted by ``user_id``, newest first."""
        expenses = self.store.list_expenses(submitter_id=user_id, status=status)
        return sorted(
            expenses,
            key=lambda e: (e.created_at, str(e.expense_id)),
            reverse=True,
        )
