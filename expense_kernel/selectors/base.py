"""
Module: expense_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
Architecture position: Kernel > Selectors.  Reads through the entity store
    protocol only; selectors never create, modify, or delete data.

Invariants enforced:
    - Read-only access: selectors call only the store's read/list methods.
    - DTO return convention: selectors return frozen dataclasses, never ORM
      rows.
    - Store ownership: the caller owns the store's transaction scope.
"""

from abc import ABC

from expense_kernel.domain.store import EntityStore


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept an entity store from the caller, perform read-only
        queries, and return DTOs or computed results.
    """

    def __init__(self, store: EntityStore):
        self.store = store
