"""
Entity store interface (``expense_kernel.domain.store``).

The durable collaborator behind the approval core.  The transition engine,
audit trail and selectors depend on this protocol only; the SQLAlchemy
implementation lives in ``expense_kernel.services.entity_store``.

Every method runs inside the caller's transaction.  Implementations never
commit.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from expense_kernel.domain.dtos import (
    ApprovalRecord,
    ExpenseSnapshot,
    UserProfile,
)
from expense_kernel.domain.workflow import ExpenseStatus


class EntityStore(Protocol):
    """Pluggable persistence for users, expenses and approvals."""

    def read_user(self, user_id: UUID) -> UserProfile:
        """Return a user; raises UserNotFoundError."""
        ...

    def read_expense(self, expense_id: UUID) -> ExpenseSnapshot:
        """Return the latest committed expense; raises ExpenseNotFoundError."""
        ...

    def read_expense_for_update(self, expense_id: UUID) -> ExpenseSnapshot:
        """Return the expense with its row locked for the transaction."""
        ...

    def write_expense(
        self,
        expense: ExpenseSnapshot,
        *,
        expected_version: int,
        expected_status: ExpenseStatus,
    ) -> bool:
        """Write ``expense`` only if the stored row is still at
        ``expected_version`` and ``expected_status``.

        Returns False (and writes nothing) when the condition fails.
        """
        ...

    def append_approval(self, record: ApprovalRecord) -> ApprovalRecord:
        """Append an immutable approval record."""
        ...

    def list_approvals(self, expense_id: UUID) -> list[ApprovalRecord]:
        """All approvals of an expense, oldest first."""
        ...

    def find_user_by_email(self, email: str) -> UserProfile | None:
        """Case-insensitive lookup; None if no user has this address."""
        ...

    def create_user(self, profile: UserProfile) -> UserProfile:
        ...

    def update_user(self, profile: UserProfile) -> UserProfile:
        ...

    def delete_user(self, user_id: UUID) -> None:
        ...

    def count_references(self, user_id: UUID) -> tuple[int, int]:
        """(expenses submitted, approvals recorded) for a user."""
        ...

    def create_expense(self, expense: ExpenseSnapshot) -> ExpenseSnapshot:
        ...

    def delete_expense(self, expense_id: UUID, *, expected_version: int) -> bool:
        ...

    def list_expenses(
        self,
        *,
        submitter_id: UUID | None = None,
        status: ExpenseStatus | None = None,
        created_before: datetime | None = None,
    ) -> list[ExpenseSnapshot]:
        """Expenses matching all given filters, oldest first."""
        ...
