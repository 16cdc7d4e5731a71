"""
Domain DTOs (``expense_kernel.domain.dtos``).

Frozen value objects passed between the store, the resolver and the
transition engine.  Entities refer to each other by identifier only;
nothing here loads related rows lazily.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from expense_kernel.domain.workflow import (
    DecisionVerdict,
    ExpenseStatus,
    UserRole,
    is_terminal,
)


@dataclass(frozen=True)
class UserProfile:
    """A user as seen by the approval core."""

    user_id: UUID
    name: str
    email: str
    role: UserRole
    department: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class ExpenseSnapshot:
    """Immutable view of an expense at a given version.

    ``submitter_department`` is captured at submission so that eligibility
    does not shift if the submitter later moves department.
    ``expense_date`` is the day the cost was incurred, as entered by the
    submitter; ``created_at`` is when it was recorded.
    """

    expense_id: UUID
    submitter_id: UUID
    submitter_department: str
    amount: Decimal
    currency: str
    category: str
    description: str
    expense_date: date
    status: ExpenseStatus
    version: int
    created_at: datetime
    updated_at: datetime

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)


@dataclass(frozen=True)
class ApprovalRecord:
    """Record of a single approval decision. Immutable."""

    approval_id: UUID
    expense_id: UUID
    approver_id: UUID
    verdict: DecisionVerdict
    comment: str | None
    created_at: datetime
    record_hash: str


@dataclass(frozen=True)
class DecisionOutcome:
    """Result of a successful decision: the updated expense and its new record."""

    expense: ExpenseSnapshot
    approval: ApprovalRecord
