"""
Module: expense_kernel.models.user
Responsibility: ORM persistence for users (identity, role, department).

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Role is one of the closed UserRole values (DB check constraint;
      UnknownStatusError on load otherwise).
    - Email is unique regardless of case (unique index on lower(email)).
    - Referential integrity: expenses and approvals reference users by
      foreign key, so a referenced user cannot be deleted.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from expense_kernel.db.base import Base, UTCDateTime
from expense_kernel.domain.dtos import UserProfile
from expense_kernel.domain.workflow import UserRole
from expense_kernel.exceptions import UnknownStatusError

EMAIL_INDEX_NAME = "uq_users_email_lower"


class UserModel(Base):
    """Persistent user."""

    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint(
            "role IN ('employee', 'manager', 'admin')",
            name="ck_users_valid_role",
        ),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    department: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<User {self.email} role={self.role} dept={self.department}>"

    def to_dto(self) -> UserProfile:
        """Convert ORM model to frozen domain DTO."""
        try:
            role = UserRole(self.role)
        except ValueError:
            raise UnknownStatusError("User", str(self.id), self.role) from None

        return UserProfile(
            user_id=self.id,
            name=self.name,
            email=self.email,
            role=role,
            department=self.department,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: UserProfile) -> UserModel:
        """Create ORM model from domain DTO."""
        return cls(
            id=dto.user_id,
            name=dto.name,
            email=dto.email,
            role=dto.role.value,
            department=dto.department,
            created_at=dto.created_at,
        )


Index(EMAIL_INDEX_NAME, func.lower(UserModel.email), unique=True)
