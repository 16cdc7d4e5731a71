"""Kernel services: the entity store, the transition engine and the workflow facade."""

from expense_kernel.services.directory_service import DirectoryService
from expense_kernel.services.entity_store import SqlEntityStore
from expense_kernel.services.expense_workflow import ExpenseWorkflow
from expense_kernel.services.submission_service import SubmissionService
from expense_kernel.services.transition_engine import TransitionEngine

__all__ = [
    "DirectoryService",
    "ExpenseWorkflow",
    "SqlEntityStore",
    "SubmissionService",
    "TransitionEngine",
]
