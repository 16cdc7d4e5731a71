"""ORM models for the expense kernel."""

from expense_kernel.models.approval import ApprovalModel
from expense_kernel.models.expense import ExpenseModel
from expense_kernel.models.user import UserModel

__all__ = [
    "ApprovalModel",
    "ExpenseModel",
    "UserModel",
]
