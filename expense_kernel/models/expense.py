"""
Module: expense_kernel.models.expense
Responsibility: ORM persistence for expenses.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Status is one of the closed ExpenseStatus values (DB check constraint;
      UnknownStatusError on load otherwise).
    - Amount is strictly positive.
    - ``version`` is the optimistic concurrency token: every write bumps it,
      and status writes are conditioned on the version the writer read.
    - Terminal expenses are frozen (see db/immutability.py).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from expense_kernel.db.base import Base, UTCDateTime, UUIDString
from expense_kernel.domain.dtos import ExpenseSnapshot
from expense_kernel.domain.workflow import ExpenseStatus
from expense_kernel.exceptions import UnknownStatusError


class ExpenseModel(Base):
    """Persistent expense."""

    __tablename__ = "expenses"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_expenses_valid_status",
        ),
        CheckConstraint("amount > 0", name="ck_expenses_positive_amount"),
        CheckConstraint("version >= 1", name="ck_expenses_version"),
        Index("ix_expenses_submitter_status", "submitter_id", "status"),
        Index("ix_expenses_status_created", "status", "created_at"),
        Index("ix_expenses_submitter_date", "submitter_id", "expense_date"),
    )

    submitter_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )
    submitter_department: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<Expense {self.id} status={self.status} v{self.version}>"

    def to_dto(self) -> ExpenseSnapshot:
        """Convert ORM model to frozen domain DTO."""
        try:
            status = ExpenseStatus(self.status)
        except ValueError:
            raise UnknownStatusError("Expense", str(self.id), self.status) from None

        return ExpenseSnapshot(
            expense_id=self.id,
            submitter_id=self.submitter_id,
            submitter_department=self.submitter_department,
            amount=self.amount,
            currency=self.currency,
            category=self.category,
            description=self.description,
            expense_date=self.expense_date,
            status=status,
            version=self.version,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_dto(cls, dto: ExpenseSnapshot) -> ExpenseModel:
        """Create ORM model from domain DTO."""
        return cls(
            id=dto.expense_id,
            submitter_id=dto.submitter_id,
            submitter_department=dto.submitter_department,
            amount=dto.amount,
            currency=dto.currency,
            category=dto.category,
            description=dto.description,
            expense_date=dto.expense_date,
            status=dto.status.value,
            version=dto.version,
            created_at=dto.created_at,
            updated_at=dto.updated_at,
        )
