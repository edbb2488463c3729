"""
Access Control Guard
====================

Role-and-tenant rules applied before any read or write.

Roles are capability sets, not a strict hierarchy: AGENT works tickets
(status, priority, comments) while ADMIN manages them (assignment, due
dates, deletion, users, SLA settings). SUPER_ADMIN holds every capability
and is the only role whose scope is global.

Tenant isolation rule: a tenant-scoped actor never learns that a resource
outside its organization exists. Such resources are reported as not found,
never as forbidden.
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, Optional
from uuid import UUID

from src.access.domain.actor import Actor
from src.config import Role
from src.core import (
    AuthorizationException,
    InvalidStateException,
    ResourceNotFoundException,
    ValidationException,
)


class Capability(str, Enum):
    CREATE_TICKET = "create_ticket"
    VIEW_ALL_TICKETS = "view_all_tickets"
    CHANGE_STATUS = "change_status"
    CHANGE_PRIORITY = "change_priority"
    ASSIGN_TICKET = "assign_ticket"
    SET_DUE_DATE = "set_due_date"
    DELETE_ANY_TICKET = "delete_any_ticket"
    COMMENT_ANY_TICKET = "comment_any_ticket"
    VIEW_DASHBOARD = "view_dashboard"
    VIEW_WORKLOAD = "view_workload"
    LIST_AGENTS = "list_agents"
    MANAGE_USERS = "manage_users"
    MANAGE_SLA = "manage_sla"
    MANAGE_ORGANIZATIONS = "manage_organizations"
    RUN_SLA_SWEEP = "run_sla_sweep"


_AGENT: FrozenSet[Capability] = frozenset({
    Capability.CREATE_TICKET,
    Capability.VIEW_ALL_TICKETS,
    Capability.CHANGE_STATUS,
    Capability.CHANGE_PRIORITY,
    Capability.COMMENT_ANY_TICKET,
    Capability.VIEW_DASHBOARD,
    Capability.LIST_AGENTS,
})

_ADMIN: FrozenSet[Capability] = frozenset({
    Capability.CREATE_TICKET,
    Capability.VIEW_ALL_TICKETS,
    Capability.CHANGE_STATUS,
    Capability.CHANGE_PRIORITY,
    Capability.ASSIGN_TICKET,
    Capability.SET_DUE_DATE,
    Capability.DELETE_ANY_TICKET,
    Capability.COMMENT_ANY_TICKET,
    Capability.VIEW_DASHBOARD,
    Capability.VIEW_WORKLOAD,
    Capability.LIST_AGENTS,
    Capability.MANAGE_USERS,
    Capability.MANAGE_SLA,
})

ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.USER: frozenset({Capability.CREATE_TICKET}),
    Role.AGENT: _AGENT,
    Role.ADMIN: _ADMIN,
    Role.SUPER_ADMIN: frozenset(Capability),
}


class AccessGuard:
    """Stateless authorization checks. Every method raises or returns."""

    @staticmethod
    def has(actor: Actor, capability: Capability) -> bool:
        return capability in ROLE_CAPABILITIES.get(actor.role, frozenset())

    @staticmethod
    def require(actor: Actor, capability: Capability, message: Optional[str] = None) -> None:
        """Fail with AuthorizationException unless the actor's role grants the capability."""
        if not AccessGuard.has(actor, capability):
            raise AuthorizationException(
                message or "You do not have permission to perform this action",
                {"role": actor.role.value, "capability": capability.value}
            )

    @staticmethod
    def tenant_scope(actor: Actor, organization_id: Optional[UUID] = None) -> Optional[UUID]:
        """
        Organization every list/count query is restricted to.

        Tenant-scoped actors always get their own organization and the
        requested one is ignored. SUPER_ADMIN gets the requested organization,
        or None for global scope.
        """
        if actor.is_super_admin:
            return organization_id
        return actor.organization_id

    @staticmethod
    def in_tenant(actor: Actor, organization_id: Optional[UUID]) -> bool:
        return actor.is_super_admin or (
            actor.organization_id is not None and actor.organization_id == organization_id
        )

    @staticmethod
    def ensure_in_tenant(
        actor: Actor,
        organization_id: Optional[UUID],
        resource_type: str,
        resource_id: Any = None
    ) -> None:
        """Hide resources of other tenants behind a not-found."""
        if not AccessGuard.in_tenant(actor, organization_id):
            raise ResourceNotFoundException(
                resource_type, str(resource_id) if resource_id is not None else None
            )

    @staticmethod
    def ensure_can_read_ticket(actor: Actor, ticket: Any) -> None:
        AccessGuard.ensure_in_tenant(actor, ticket.organization_id, "Ticket", ticket.id)
        if not actor.owns(ticket) and not AccessGuard.has(actor, Capability.VIEW_ALL_TICKETS):
            raise AuthorizationException("You can only access your own tickets")

    @staticmethod
    def ensure_can_comment(actor: Actor, ticket: Any) -> None:
        AccessGuard.ensure_in_tenant(actor, ticket.organization_id, "Ticket", ticket.id)
        if not actor.owns(ticket) and not AccessGuard.has(actor, Capability.COMMENT_ANY_TICKET):
            raise AuthorizationException("You can only comment on your own tickets")

    @staticmethod
    def ensure_can_delete_ticket(actor: Actor, ticket: Any) -> None:
        AccessGuard.ensure_in_tenant(actor, ticket.organization_id, "Ticket", ticket.id)
        if not actor.owns(ticket) and not AccessGuard.has(actor, Capability.DELETE_ANY_TICKET):
            raise AuthorizationException("You can only delete your own tickets")

    @staticmethod
    def ensure_assignable(actor: Actor, ticket: Any, target: Any) -> None:
        """The assignee must be an AGENT of the ticket's organization."""
        AccessGuard.ensure_in_tenant(actor, target.organization_id, "User", target.id)
        if target.organization_id != ticket.organization_id:
            raise ResourceNotFoundException("User", str(target.id))
        if target.role != Role.AGENT.value:
            raise InvalidStateException("User is not an agent", {"user_id": str(target.id)})

    @staticmethod
    def ensure_can_change_role(actor: Actor, target: Any, new_role: Role) -> None:
        AccessGuard.require(actor, Capability.MANAGE_USERS)
        if target.id == actor.id:
            raise AuthorizationException("You cannot change your own role")
        AccessGuard.ensure_in_tenant(actor, target.organization_id, "User", target.id)
        if not actor.is_super_admin and (
            new_role == Role.SUPER_ADMIN or target.role == Role.SUPER_ADMIN.value
        ):
            raise AuthorizationException("Only a super admin can grant or revoke super admin")

    @staticmethod
    def resolve_organization_id(actor: Actor, organization_id: Optional[UUID]) -> UUID:
        """
        Organization targeted by an organization-level operation.

        ADMIN always acts on its own organization; SUPER_ADMIN must name one.
        """
        resolved = organization_id if actor.is_super_admin else actor.organization_id
        if resolved is None:
            raise ValidationException(
                "organizationId is required",
                {"organizationId": "required"}
            )
        return resolved
