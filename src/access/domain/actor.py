"""
Actor
=====

The authenticated caller of every core operation. Resolved once at the edge
from the bearer credential and passed explicitly into services.
"""

from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from src.config import Role


@dataclass(frozen=True)
class Actor:
    """Authenticated identity: who is acting, in which role, for which tenant."""

    id: UUID
    role: Role
    organization_id: Optional[UUID] = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == Role.SUPER_ADMIN

    def owns(self, ticket: Any) -> bool:
        """True when the actor created the ticket."""
        return ticket.user_id == self.id
