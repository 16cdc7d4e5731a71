"""Pure domain layer: enumerations, value objects, the resolver, the clock."""

from expense_kernel.domain.authorization import (
    DEFAULT_POLICY,
    ApprovalPolicy,
    EligibilityResult,
    can_approve,
    evaluate_eligibility,
)
from expense_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from expense_kernel.domain.dtos import (
    ApprovalRecord,
    DecisionOutcome,
    ExpenseSnapshot,
    UserProfile,
)
from expense_kernel.domain.store import EntityStore
from expense_kernel.domain.workflow import (
    EXPENSE_TRANSITIONS,
    INITIAL_STATUS,
    TERMINAL_STATUSES,
    DecisionVerdict,
    ExpenseStatus,
    UserRole,
    is_terminal,
    next_status,
    parse_verdict,
)

__all__ = [
    "ApprovalPolicy",
    "ApprovalRecord",
    "Clock",
    "DEFAULT_POLICY",
    "DecisionOutcome",
    "DecisionVerdict",
    "DeterministicClock",
    "EXPENSE_TRANSITIONS",
    "EligibilityResult",
    "EntityStore",
    "ExpenseSnapshot",
    "ExpenseStatus",
    "INITIAL_STATUS",
    "SystemClock",
    "TERMINAL_STATUSES",
    "UserProfile",
    "UserRole",
    "can_approve",
    "evaluate_eligibility",
    "is_terminal",
    "next_status",
    "parse_verdict",
]
