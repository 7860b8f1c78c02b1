"""Session principal: the read-only identity view built after authentication."""

from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from app.models.user import User


@dataclass(frozen=True)
class SessionPrincipal:
    id: str
    email: str
    roles: FrozenSet[str] = field(default_factory=frozenset)
    person_id: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "SessionPrincipal":
        return cls(
            id=user.id,
            email=user.email,
            roles=user.role_names,
            person_id=user.person_id,
        )

    def has_role(self, role: str) -> bool:
        return role.upper() in self.roles
