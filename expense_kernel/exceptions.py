"""
Typed Exception Hierarchy for the Expense Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ExpenseKernelError:

    ExpenseKernelError (base)
    |
    +-- DecisionError
    |   +-- UnauthorizedApproverError
    |   +-- InvalidStateError
    |   +-- InvalidDecisionError
    |
    +-- StoreError
    |   +-- StoreUnavailableError
    |   +-- ExpenseNotFoundError
    |   +-- UserNotFoundError
    |
    +-- ExpenseError
    |   +-- InvalidExpenseError
    |
    +-- DirectoryError
    |   +-- UnauthorizedProfileChangeError
    |   +-- UserReferencedError
    |   +-- DuplicateUserError
    |   +-- InvalidProfileError
    |
    +-- IntegrityError
    |   +-- UnknownStatusError
    |   +-- AuditTrailAnomalyError
    |   +-- TamperDetectedError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Decision        | UNAUTHORIZED                | Actor is not an eligible approver
                | INVALID_STATE               | Expense terminal, or lost a race
                | INVALID_DECISION            | Verdict outside approved/rejected
----------------|-----------------------------|-----------------------------------------
Store           | STORE_UNAVAILABLE           | Transient store failure (retryable)
                | EXPENSE_NOT_FOUND           | Expense ID doesn't exist
                | USER_NOT_FOUND              | User ID doesn't exist
----------------|-----------------------------|-----------------------------------------
Expense         | INVALID_EXPENSE             | Amount/currency/ownership rule broken
----------------|-----------------------------|-----------------------------------------
Directory       | UNAUTHORIZED_PROFILE_CHANGE | Non-admin changing role/department
                | USER_REFERENCED             | Deleting a user with expenses/approvals
                | DUPLICATE_USER              | Registering an e-mail already in use
                | INVALID_PROFILE             | Unknown role, malformed e-mail, blank field
----------------|-----------------------------|-----------------------------------------
Integrity       | UNKNOWN_STATUS              | Stored enum value outside closed set
                | AUDIT_TRAIL_ANOMALY         | History disagrees with expense state
                | TAMPER_DETECTED             | Approval hash mismatch
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying an approval record

===============================================================================
HANDLING PATTERNS
===============================================================================

Decision errors are deterministic business-rule rejections.  They propagate
unchanged to the caller and must never be retried:

    try:
        workflow.decide(expense, approver, "approved", comment)
    except InvalidStateError as e:
        return {"error": e.code, "status": e.current_status}

StoreUnavailableError is the only error with ``retryable = True``.  The
kernel itself never retries; a boundary layer may.
"""


class ExpenseKernelError(Exception):
    """
    Base exception for all expense kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "EXPENSE_KERNEL_ERROR"
    retryable: bool = False


# Decision-related exceptions


class DecisionError(ExpenseKernelError):
    """Base exception for rejected approval decisions."""

    code: str = "DECISION_ERROR"


class UnauthorizedApproverError(DecisionError):
    """Acting user is not eligible to decide on this expense."""

    code: str = "UNAUTHORIZED"

    def __init__(self, expense_id: str, actor_id: str, reason: str):
        self.expense_id = expense_id
        self.actor_id = actor_id
        self.reason = reason
        super().__init__(
            f"User {actor_id} may not decide on expense {expense_id}: {reason}"
        )


class InvalidStateError(DecisionError):
    """Expense is not in a decidable state.

    Also raised to the losing writer of a concurrent decision: its
    precondition (status pending at the version it read) no longer holds.
    """

    code: str = "INVALID_STATE"

    def __init__(self, expense_id: str, current_status: str, reason: str):
        self.expense_id = expense_id
        self.current_status = current_status
        self.reason = reason
        super().__init__(
            f"Expense {expense_id} cannot be decided "
            f"(status={current_status}): {reason}"
        )


class InvalidDecisionError(DecisionError):
    """Decision value is outside the closed verdict set."""

    code: str = "INVALID_DECISION"

    def __init__(self, decision: str):
        self.decision = decision
        super().__init__(
            f"Invalid decision {decision!r}: must be 'approved' or 'rejected'"
        )


# Store-related exceptions


class StoreError(ExpenseKernelError):
    """Base exception for entity store errors."""

    code: str = "STORE_ERROR"


class StoreUnavailableError(StoreError):
    """Transient failure of the entity store (timeout, lost connection)."""

    code: str = "STORE_UNAVAILABLE"
    retryable: bool = True

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Entity store unavailable during {operation}: {detail}")


class ExpenseNotFoundError(StoreError):
    """Expense with given ID was not found."""

    code: str = "EXPENSE_NOT_FOUND"

    def __init__(self, expense_id: str):
        self.expense_id = expense_id
        super().__init__(f"Expense not found: {expense_id}")


class UserNotFoundError(StoreError):
    """User with given ID was not found."""

    code: str = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


# Expense submission exceptions


class ExpenseError(ExpenseKernelError):
    """Base exception for expense submission errors."""

    code: str = "EXPENSE_ERROR"


class InvalidExpenseError(ExpenseError):
    """Expense data or ownership rule violated."""

    code: str = "INVALID_EXPENSE"

    def __init__(self, reason: str, expense_id: str | None = None):
        self.reason = reason
        self.expense_id = expense_id
        if expense_id:
            super().__init__(f"Invalid expense {expense_id}: {reason}")
        else:
            super().__init__(f"Invalid expense: {reason}")


# Directory exceptions


class DirectoryError(ExpenseKernelError):
    """Base exception for user directory errors."""

    code: str = "DIRECTORY_ERROR"


class UnauthorizedProfileChangeError(DirectoryError):
    """Role and department may only be changed by an administrator."""

    code: str = "UNAUTHORIZED_PROFILE_CHANGE"

    def __init__(self, actor_id: str, user_id: str):
        self.actor_id = actor_id
        self.user_id = user_id
        super().__init__(
            f"User {actor_id} is not an administrator and cannot change "
            f"the profile of user {user_id}"
        )


class UserReferencedError(DirectoryError):
    """User is referenced by expenses or approvals and cannot be deleted."""

    code: str = "USER_REFERENCED"

    def __init__(self, user_id: str, expenses: int, approvals: int):
        self.user_id = user_id
        self.expenses = expenses
        self.approvals = approvals
        super().__init__(
            f"User {user_id} is referenced by {expenses} expense(s) and "
            f"{approvals} approval(s)"
        )


class DuplicateUserError(DirectoryError):
    """A user with this e-mail address already exists."""

    code: str = "DUPLICATE_USER"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"A user with e-mail {email} already exists")


class InvalidProfileError(DirectoryError):
    """A profile field has a value the directory cannot store."""

    code: str = "INVALID_PROFILE"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


# Data integrity exceptions


class IntegrityError(ExpenseKernelError):
    """Base exception for stored data that breaks a kernel invariant."""

    code: str = "INTEGRITY_ERROR"


class UnknownStatusError(IntegrityError):
    """A stored enumeration value is outside its closed set."""

    code: str = "UNKNOWN_STATUS"

    def __init__(self, entity_type: str, entity_id: str, value: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.value = value
        super().__init__(
            f"{entity_type} {entity_id} holds unrecognized value {value!r}"
        )


class AuditTrailAnomalyError(IntegrityError):
    """Approval history disagrees with the expense it belongs to."""

    code: str = "AUDIT_TRAIL_ANOMALY"

    def __init__(self, expense_id: str, anomalies: list[str]):
        self.expense_id = expense_id
        self.anomalies = anomalies
        super().__init__(
            f"Audit trail of expense {expense_id} is inconsistent: "
            + "; ".join(anomalies)
        )


class TamperDetectedError(IntegrityError):
    """Approval record hash does not match its contents."""

    code: str = "TAMPER_DETECTED"

    def __init__(self, approval_id: str):
        self.approval_id = approval_id
        super().__init__(f"Approval {approval_id} failed hash verification")


# Immutability-related exceptions


class ImmutabilityError(ExpenseKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Approvals are append-only from creation.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
