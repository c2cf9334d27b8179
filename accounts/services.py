"""Actor resolution for role-gated operations."""

from __future__ import annotations

from dataclasses import dataclass

from .models import User

SYSTEM_ROLE = 'system'
BACK_OFFICE_ROLES = frozenset({User.Role.STAFF, User.Role.ADMIN})


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation: a user id and the role they act in."""

    role: str
    user_id: int | None = None

    @property
    def is_back_office(self) -> bool:
        return self.role in BACK_OFFICE_ROLES

    @property
    def is_customer(self) -> bool:
        return self.role == User.Role.CUSTOMER

    @property
    def is_system(self) -> bool:
        return self.role == SYSTEM_ROLE

    @classmethod
    def system(cls) -> Actor:
        return cls(role=SYSTEM_ROLE)


def actor_for(user: User) -> Actor:
    """Build the acting identity for an authenticated user."""
    return Actor(role=str(user.effective_role), user_id=user.pk)
