"""
TransitionEngine -- applies approve/reject decisions to pending expenses.

Responsibility:
    Validates a decision against the expense state machine and the
    authorization resolver, then performs the two writes of a decision
    (conditional status update + appended approval) through the entity
    store.

Architecture position:
    Kernel > Services -- imperative shell around the pure domain rules in
    ``expense_kernel.domain.workflow`` and ``expense_kernel.domain.authorization``.

Check order:
    1. Decision validity          -> InvalidDecisionError
    2. State on caller's snapshot -> InvalidStateError
    3. Eligibility on snapshot    -> UnauthorizedApproverError
    4. Re-read row under lock; re-verify state, version, eligibility
    5. Conditional UPDATE         -> InvalidStateError if it matched no row
    6. Append approval

Invariants enforced:
    - A terminal expense never changes status again.
    - At most one decision succeeds per expense; the loser of a race writes
      nothing and gets InvalidStateError.
    - Every successful decision produces exactly one approval whose
      timestamp and the expense's ``updated_at`` come from the same clock
      reading.
    - Flush only.  The caller's transaction makes both writes atomic.

Failure modes:
    - InvalidDecisionError, InvalidStateError, UnauthorizedApproverError:
      deterministic refusals.  None is retried.
    - ExpenseNotFoundError / UserNotFoundError from the store.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import uuid4

from expense_kernel.domain.authorization import (
    DEFAULT_POLICY,
    ApprovalPolicy,
    evaluate_eligibility,
)
from expense_kernel.domain.clock import Clock
from expense_kernel.domain.dtos import (
    ApprovalRecord,
    DecisionOutcome,
    ExpenseSnapshot,
    UserProfile,
)
from expense_kernel.domain.store import EntityStore
from expense_kernel.domain.workflow import DecisionVerdict, next_status, parse_verdict
from expense_kernel.exceptions import (
    InvalidDecisionError,
    InvalidStateError,
    UnauthorizedApproverError,
)
from expense_kernel.logging_config import get_logger
from expense_kernel.utils.hashing import hash_approval

logger = get_logger("services.transition_engine")


class TransitionEngine:
    """Decides pending expenses.

    Args:
        store: Entity store bound to the caller's transaction.
        clock: Source of decision timestamps.
        policy: Approval rule table for the resolver.
    """

    def __init__(
        self,
        store: EntityStore,
        clock: Clock,
        policy: ApprovalPolicy = DEFAULT_POLICY,
    ):
        self._store = store
        self._clock = clock
        self._policy = policy

    def decide(
        self,
        expense: ExpenseSnapshot,
        acting_user: UserProfile,
        decision: DecisionVerdict | str,
        comment: str | None = None,
    ) -> DecisionOutcome:
        """Approve or reject ``expense`` on behalf of ``acting_user``.

        Returns:
            DecisionOutcome with the expense at its new version and the
            appended approval record.
        """
        verdict = parse_verdict(decision)
        if verdict is None:
            self._refuse(expense, acting_user, "invalid_decision", verdict)
            raise InvalidDecisionError(str(getattr(decision, "value", decision)))

        if expense.is_terminal:
            self._refuse(expense, acting_user, "expense_terminal", verdict)
            raise InvalidStateError(
                str(expense.expense_id),
                expense.status.value,
                "Expense has already been decided",
            )

        eligibility = evaluate_eligibility(acting_user, expense, self._policy)
        if not eligibility:
            self._refuse(expense, acting_user, eligibility.reason, verdict)
            raise UnauthorizedApproverError(
                str(expense.expense_id), str(acting_user.user_id), eligibility.reason,
            )

        # Re-verify everything against the locked, committed row.
        current = self._store.read_expense_for_update(expense.expense_id)
        if current.is_terminal:
            self._refuse(current, acting_user, "concurrent_decision", verdict)
            raise InvalidStateError(
                str(current.expense_id),
                current.status.value,
                "Expense was decided by a concurrent request",
            )
        if current.version != expense.version:
            self._refuse(current, acting_user, "stale_version", verdict)
            raise InvalidStateError(
                str(current.expense_id),
                current.status.value,
                f"Expense changed since it was read "
                f"(version {expense.version} -> {current.version})",
            )

        approver = self._store.read_user(acting_user.user_id)
        eligibility = evaluate_eligibility(approver, current, self._policy)
        if not eligibility:
            self._refuse(current, approver, eligibility.reason, verdict)
            raise UnauthorizedApproverError(
                str(current.expense_id), str(approver.user_id), eligibility.reason,
            )

        new_status = next_status(current.status, verdict)
        if new_status is None:
            raise InvalidStateError(
                str(current.expense_id),
                current.status.value,
                f"No transition from {current.status.value} on {verdict.value}",
            )

        now = self._clock.now()
        updated = replace(
            current,
            status=new_status,
            version=current.version + 1,
            updated_at=now,
        )
        written = self._store.write_expense(
            updated,
            expected_version=current.version,
            expected_status=current.status,
        )
        if not written:
            self._refuse(current, approver, "concurrent_decision", verdict)
            raise InvalidStateError(
                str(current.expense_id),
                current.status.value,
                "Expense was decided by a concurrent request",
            )

        approval_id = uuid4()
        approval = self._store.append_approval(
            ApprovalRecord(
                approval_id=approval_id,
                expense_id=current.expense_id,
                approver_id=approver.user_id,
                verdict=verdict,
                comment=comment,
                created_at=now,
                record_hash=hash_approval(
                    approval_id,
                    current.expense_id,
                    approver.user_id,
                    verdict.value,
                    comment,
                    now,
                ),
            )
        )

        logger.info(
            "expense_decided",
            extra={
                "expense_id": str(current.expense_id),
                "actor_id": str(approver.user_id),
                "verdict": verdict.value,
                "from_status": current.status.value,
                "to_status": new_status.value,
                "version": updated.version,
                "approval_id": str(approval.approval_id),
            },
        )

        return DecisionOutcome(expense=updated, approval=approval)

    def _refuse(
        self,
        expense: ExpenseSnapshot,
        user: UserProfile,
        reason: str,
        verdict: DecisionVerdict | None,
    ) -> None:
        extra = {
            "expense_id": str(expense.expense_id),
            "actor_id": str(user.user_id),
            "status": expense.status.value,
            "reason": reason,
        }
        if verdict is not None:
            extra["verdict"] = verdict.value
        logger.warning("decision_refused", extra=extra)
