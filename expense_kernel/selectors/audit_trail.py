"""
Module: expense_kernel.selectors.audit_trail
Responsibility: Ordered, append-only decision history per expense, and the
    consistency checks that tie that history to the expense's status.
Architecture position: Kernel > Selectors.  Read-only.

Invariants checked by ``verify``:
    - At most one approval per expense (single decision closes the case).
    - A pending expense has no history; a decided expense has exactly one
      record and its verdict matches the status.
    - No record predates the expense it decides.
    - Every record's stored hash matches its content.

Failure modes:
    - ExpenseNotFoundError if the expense does not exist.
    - TamperDetectedError / AuditTrailAnomalyError from ``assert_consistent``.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from expense_kernel.domain.dtos import ApprovalRecord
from expense_kernel.domain.workflow import ExpenseStatus, status_for_verdict
from expense_kernel.exceptions import AuditTrailAnomalyError, TamperDetectedError
from expense_kernel.logging_config import get_logger
from expense_kernel.selectors.base import BaseSelector
from expense_kernel.utils.hashing import hash_approval

logger = get_logger("selectors.audit_trail")


@dataclass(frozen=True)
class AuditReport:
    """Result of verifying one expense's history."""

    expense_id: UUID
    status: ExpenseStatus
    record_count: int
    anomalies: tuple[str, ...]
    tampered: tuple[UUID, ...] = ()

    @property
    def is_clean(self) -> bool:
        return not self.anomalies


def record_hash_matches(record: ApprovalRecord) -> bool:
    """True if ``record.record_hash`` matches the record's content."""
    expected = hash_approval(
        record.approval_id,
        record.expense_id,
        record.approver_id,
        record.verdict.value,
        record.comment,
        record.created_at,
    )
    return expected == record.record_hash


class AuditTrail(BaseSelector):
    """Read access to approval history. Never cached; every call hits the store."""

    def history(self, expense_id: UUID) -> tuple[ApprovalRecord, ...]:
        """All approvals of ``expense_id``, oldest first (ties by approval id)."""
        records = self.store.list_approvals(expense_id)
        return tuple(sorted(records, key=lambda r: (r.created_at, str(r.approval_id))))

    def verify(self, expense_id: UUID) -> AuditReport:
        expense = self.store.read_expense(expense_id)
        records = self.history(expense_id)
        anomalies: list[str] = []

        if len(records) > 1:
            anomalies.append(f"multiple_records: {len(records)} approvals recorded")

        if expense.status is ExpenseStatus.PENDING:
            if records:
                anomalies.append("pending_with_history: pending expense has approvals")
        elif not records:
            anomalies.append(
                f"missing_history: {expense.status.value} expense has no approval"
            )

        tampered: list[UUID] = []
        for record in records:
            if expense.is_terminal and status_for_verdict(record.verdict) is not expense.status:
                anomalies.append(
                    f"verdict_status_mismatch: approval {record.approval_id} says "
                    f"{record.verdict.value}, expense is {expense.status.value}"
                )
            if record.created_at < expense.created_at:
                anomalies.append(
                    f"record_before_creation: approval {record.approval_id} at "
                    f"{record.created_at.isoformat()}"
                )
            if not record_hash_matches(record):
                tampered.append(record.approval_id)
                anomalies.append(f"hash_mismatch: approval {record.approval_id}")

        report = AuditReport(
            expense_id=expense_id,
            status=expense.status,
            record_count=len(records),
            anomalies=tuple(anomalies),
            tampered=tuple(tampered),
        )
        if not report.is_clean:
            logger.warning(
                "audit_trail_anomaly",
                extra={
                    "expense_id": str(expense_id),
                    "anomalies": list(report.anomalies),
                },
            )
        return report

    def assert_consistent(self, expense_id: UUID) -> AuditReport:
        """Verify and raise on the first problem found.

        Raises:
            TamperDetectedError: A record's hash does not match its content.
            AuditTrailAnomalyError: Any other anomaly.
        """
        report = self.verify(expense_id)
        if report.tampered:
            raise TamperDetectedError(str(report.tampered[0]))
        if not report.is_clean:
            raise AuditTrailAnomalyError(str(expense_id), list(report.anomalies))
        return report
