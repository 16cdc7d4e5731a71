"""
Authorization resolver (``expense_kernel.domain.authorization``).

Responsibility
--------------
Decides whether a user is an eligible approver for an expense in its
current state.

Architecture position
---------------------
**Kernel domain layer** -- pure function of its inputs.  ZERO I/O.  The
transition engine calls it twice per decision (once on the caller's
snapshot, once on the row re-read under lock), so it must give the same
answer for the same inputs.

Rules, evaluated in order (first match wins)
--------------------------------------------
1. Expense already terminal          -> not eligible (``expense_terminal``)
2. User submitted the expense        -> not eligible (``self_approval``)
3. Role has no approval rights       -> not eligible (``role_cannot_approve``)
4. Role approves across departments  -> eligible
5. Role approves its own department  -> eligible iff departments match
                                        (``department_mismatch`` otherwise)

Ineligibility is a normal answer, never an exception.
"""

from __future__ import annotations

from dataclasses import dataclass

from expense_kernel.domain.dtos import ExpenseSnapshot, UserProfile
from expense_kernel.domain.workflow import UserRole


@dataclass(frozen=True)
class ApprovalPolicy:
    """Which roles may approve, and how far their reach extends.

    The default is the system's policy: managers approve within their own
    department, administrators approve anywhere.  ``EMPLOYEE`` can never
    be granted approval rights.
    """

    department_roles: frozenset[UserRole] = frozenset({UserRole.MANAGER})
    global_roles: frozenset[UserRole] = frozenset({UserRole.ADMIN})

    def __post_init__(self) -> None:
        if UserRole.EMPLOYEE in self.department_roles | self.global_roles:
            raise ValueError("The employee role cannot be granted approval rights")
        overlap = self.department_roles & self.global_roles
        if overlap:
            raise ValueError(
                f"Roles listed as both department and global approvers: "
                f"{sorted(r.value for r in overlap)}"
            )


DEFAULT_POLICY = ApprovalPolicy()


@dataclass(frozen=True)
class EligibilityResult:
    """Outcome of an eligibility check with a machine-readable reason."""

    allowed: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allowed


def evaluate_eligibility(
    user: UserProfile,
    expense: ExpenseSnapshot,
    policy: ApprovalPolicy = DEFAULT_POLICY,
) -> EligibilityResult:
    """Apply the rule table to ``user`` and ``expense``."""
    if expense.is_terminal:
        return EligibilityResult(False, "expense_terminal")

    if user.user_id == expense.submitter_id:
        return EligibilityResult(False, "self_approval")

    if user.role in policy.global_roles:
        return EligibilityResult(True, "global_approver")

    if user.role in policy.department_roles:
        if user.department == expense.submitter_department:
            return EligibilityResult(True, "department_approver")
        return EligibilityResult(False, "department_mismatch")

    return EligibilityResult(False, "role_cannot_approve")


def can_approve(
    user: UserProfile,
    expense: ExpenseSnapshot,
    policy: ApprovalPolicy = DEFAULT_POLICY,
) -> bool:
    """True if ``user`` may decide on ``expense`` in its current state."""
    return evaluate_eligibility(user, expense, policy).allowed
