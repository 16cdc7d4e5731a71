"""Read-only query selectors."""

from expense_kernel.selectors.audit_trail import AuditReport, AuditTrail, record_hash_matches
from expense_kernel.selectors.base import BaseSelector
from expense_kernel.selectors.expense_selector import ExpenseSelector

__all__ = [
    "AuditReport",
    "AuditTrail",
    "BaseSelector",
    "ExpenseSelector",
    "record_hash_matches",
]
