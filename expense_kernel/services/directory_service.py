"""
DirectoryService -- user registration and administration.

Role and department drive approval eligibility, so only administrators may
change them.  E-mail addresses are stored trimmed and lower-cased, so the
unique index on them is case-insensitive.  Users referenced by an expense or an approval are never
deleted: the audit trail must keep resolving its approver ids.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID, uuid4

from expense_kernel.domain.clock import Clock
from expense_kernel.domain.dtos import UserProfile
from expense_kernel.domain.store import EntityStore
from expense_kernel.domain.workflow import UserRole
from expense_kernel.exceptions import (
    DuplicateUserError,
    InvalidProfileError,
    UnauthorizedProfileChangeError,
    UserReferencedError,
)
from expense_kernel.logging_config import get_logger

logger = get_logger("services.directory")


def _coerce_role(role: UserRole | str) -> UserRole:
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(str(role).strip().lower())
    except ValueError:
        raise InvalidProfileError("role", role, "unknown role") from None


def _normalize_email(email: str) -> str:
    value = (email or "").strip().lower()
    local, at, domain = value.partition("@")
    if not (local and at and domain) or "@" in domain:
        raise InvalidProfileError("email", email, "not an e-mail address")
    return value


def _required(field: str, value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        raise InvalidProfileError(field, value, "must not be blank")
    return stripped


class DirectoryService:
    """User directory operations."""

    def __init__(self, store: EntityStore, clock: Clock):
        self._store = store
        self._clock = clock

    def register(
        self,
        name: str,
        email: str,
        role: UserRole | str,
        department: str,
    ) -> UserProfile:
        email = _normalize_email(email)
        if self._store.find_user_by_email(email) is not None:
            raise DuplicateUserError(email)

        profile = self._store.create_user(
            UserProfile(
                user_id=uuid4(),
                name=_required("name", name),
                email=email,
                role=_coerce_role(role),
                department=_required("department", department),
                created_at=self._clock.now(),
            )
        )
        logger.info(
            "user_registered",
            extra={
                "user_id": str(profile.user_id),
                "role": profile.role.value,
                "department": profile.department,
            },
        )
        return profile

    def change_profile(
        self,
        admin_id: UUID,
        user_id: UUID,
        role: UserRole | str | None = None,
        department: str | None = None,
    ) -> UserProfile:
        """Change a user's role and/or department.

        Expenses already submitted keep the department captured at
        submission time.

        Raises:
            UnauthorizedProfileChangeError: ``admin_id`` is not an administrator.
        """
        actor = self._store.read_user(admin_id)
        if actor.role is not UserRole.ADMIN:
            logger.warning(
                "profile_change_refused",
                extra={"actor_id": str(admin_id), "user_id": str(user_id)},
            )
            raise UnauthorizedProfileChangeError(str(admin_id), str(user_id))

        current = self._store.read_user(user_id)
        changes = {}
        if role is not None:
            changes["role"] = _coerce_role(role)
        if department is not None:
            changes["department"] = _required("department", department)
        if not changes:
            return current

        updated = self._store.update_user(replace(current, **changes))
        logger.info(
            "user_profile_changed",
            extra={
                "actor_id": str(admin_id),
                "user_id": str(user_id),
                "role": updated.role.value,
                "department": updated.department,
            },
        )
        return updated

    def remove(self, admin_id: UUID, user_id: UUID) -> None:
        """Delete an unreferenced user."""
        actor = self._store.read_user(admin_id)
        if actor.role is not UserRole.ADMIN:
            raise UnauthorizedProfileChangeError(str(admin_id), str(user_id))

        self._store.read_user(user_id)
        expenses, approvals = self._store.count_references(user_id)
        if expenses or approvals:
            raise UserReferencedError(str(user_id), expenses, approvals)

        self._store.delete_user(user_id)
        logger.info(
            "user_removed",
            extra={"actor_id": str(admin_id), "user_id": str(user_id)},
        )
