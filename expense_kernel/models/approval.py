"""
Module: expense_kernel.models.approval
Responsibility: ORM persistence for approval decisions (the audit trail).

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Verdict is approved or rejected; a stored approval can never say
      pending (DB check constraint; UnknownStatusError on load otherwise).
    - Append-only: UPDATE and DELETE through the ORM raise
      ImmutabilityViolationError.
    - record_hash is written once at creation and checked by the audit
      trail on every read.

Failure modes:
    - ImmutabilityViolationError on approval UPDATE/DELETE.
    - IntegrityError (database) if expense_id or approver_id do not exist.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from expense_kernel.db.base import Base, UTCDateTime, UUIDString
from expense_kernel.domain.dtos import ApprovalRecord
from expense_kernel.domain.workflow import DecisionVerdict
from expense_kernel.exceptions import ImmutabilityViolationError, UnknownStatusError


class ApprovalModel(Base):
    """Persistent approval decision record. Append-only."""

    __tablename__ = "approvals"

    __table_args__ = (
        CheckConstraint(
            "verdict IN ('approved', 'rejected')",
            name="ck_approvals_valid_verdict",
        ),
        Index("ix_approvals_expense_created", "expense_id", "created_at"),
        Index("ix_approvals_approver", "approver_id"),
    )

    expense_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("expenses.id"),
        nullable=False,
    )
    approver_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )
    verdict: Mapped[str] = mapped_column(String(20), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    record_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<Approval {self.id} expense={self.expense_id} "
            f"verdict={self.verdict}>"
        )

    def to_dto(self) -> ApprovalRecord:
        """Convert ORM model to frozen domain DTO."""
        try:
            verdict = DecisionVerdict(self.verdict)
        except ValueError:
            raise UnknownStatusError("Approval", str(self.id), self.verdict) from None

        return ApprovalRecord(
            approval_id=self.id,
            expense_id=self.expense_id,
            approver_id=self.approver_id,
            verdict=verdict,
            comment=self.comment,
            created_at=self.created_at,
            record_hash=self.record_hash,
        )

    @classmethod
    def from_dto(cls, dto: ApprovalRecord) -> ApprovalModel:
        """Create ORM model from domain DTO."""
        return cls(
            id=dto.approval_id,
            expense_id=dto.expense_id,
            approver_id=dto.approver_id,
            verdict=dto.verdict.value,
            comment=dto.comment,
            created_at=dto.created_at,
            record_hash=dto.record_hash,
        )


# =============================================================================
# ORM-Level Immutability for Approvals (Append-Only)
# =============================================================================


@event.listens_for(ApprovalModel, "before_update")
def prevent_approval_update(mapper, connection, target):
    """Prevent updates to approval records."""
    raise ImmutabilityViolationError(
        entity_type="Approval",
        entity_id=str(target.id),
        reason="Approvals are immutable -- cannot modify",
    )


@event.listens_for(ApprovalModel, "before_delete")
def prevent_approval_delete(mapper, connection, target):
    """Prevent deletion of approval records."""
    raise ImmutabilityViolationError(
        entity_type="Approval",
        entity_id=str(target.id),
        reason="Approvals are immutable -- cannot delete",
    )
