"""
Organization Application Services
==================================

Tenants, their users and their SLA thresholds.

Password hashing and token issuance belong to the identity service; the
operations here receive an already-hashed password.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Union
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from src.access.domain import AccessGuard, Actor, Capability
from src.config import Role
from src.core import (
    AuthorizationException,
    ConflictException,
    InvalidStateException,
    ResourceNotFoundException,
    ValidationException,
)
from src.organizations.domain import OrganizationSummary
from src.shared.infrastructure.logging import get_logger
from src.sla.application import ISLADefaultsProvider
from src.sla.domain import SLAThresholds

logger = get_logger(__name__)

NAME_MIN_LENGTH = 2


# ========== Repository Interfaces (Dependency Inversion) ==========

class IOrganizationRepository(ABC):
    """Interface for organization data access."""

    @abstractmethod
    async def get_by_id(self, organization_id: UUID) -> Optional[Any]:
        """Get organization by id."""

    @abstractmethod
    async def get_by_name(self, name: str) -> Optional[Any]:
        """Get organization by its unique name."""

    @abstractmethod
    async def create(self, name: str, thresholds: SLAThresholds) -> Any:
        """Create an organization with the given SLA thresholds."""

    @abstractmethod
    async def list_with_counts(self) -> List[OrganizationSummary]:
        """All organizations with user and non-deleted ticket counts, by name."""

    @abstractmethod
    async def count_users(self, organization_id: UUID) -> int:
        """Users belonging to the organization."""

    @abstractmethod
    async def count_active_tickets(self, organization_id: UUID) -> int:
        """Non-deleted tickets of the organization."""

    @abstractmethod
    async def delete(self, organization: Any) -> None:
        """Remove an (empty) organization."""

    @abstractmethod
    async def commit(self) -> None:
        """Persist pending changes."""


class IUserRepository(ABC):
    """Interface for user data access."""

    @abstractmethod
    async def get_by_id(self, user_id: UUID) -> Optional[Any]:
        """Get user by id."""

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[Any]:
        """Get user by email (case-insensitive)."""

    @abstractmethod
    async def create(
        self,
        *,
        name: str,
        email: str,
        password_hash: str,
        role: Role,
        organization_id: Optional[UUID]
    ) -> Any:
        """Create a user."""

    @abstractmethod
    async def list(self, organization_id: Optional[UUID] = None, role: Optional[Role] = None) -> List[Any]:
        """List users ordered by name."""

    @abstractmethod
    async def commit(self) -> None:
        """Persist pending changes."""


# ========== Helpers ==========

def _clean_name(value: str, field_name: str) -> str:
    value = (value or "").strip()
    if len(value) < NAME_MIN_LENGTH:
        raise ValidationException(
            "Validation Error",
            {field_name: f"must be at least {NAME_MIN_LENGTH} characters"}
        )
    return value


def _clean_email(value: str) -> str:
    value = (value or "").strip().lower()
    local, _, domain = value.partition("@")
    if not local or "." not in domain:
        raise ValidationException("Validation Error", {"email": "must be a valid email address"})
    return value


def _parse_role(value: Union[Role, str]) -> Role:
    try:
        return Role(getattr(value, "value", value))
    except ValueError:
        raise ValidationException(
            "Validation Error",
            {"role": "must be one of " + ", ".join(r.value for r in Role)}
        )


# ========== Application Services ==========

class OrganizationService:
    """Tenant registration, SLA settings and tenant removal."""

    def __init__(
        self,
        organizations: IOrganizationRepository,
        users: IUserRepository,
        sla_defaults: ISLADefaultsProvider
    ):
        self._organizations = organizations
        self._users = users
        self._sla_defaults = sla_defaults

    async def register_organization(
        self,
        name: str,
        admin_name: str,
        admin_email: str,
        password_hash: str
    ) -> Any:
        """
        Create an organization together with its first ADMIN.

        New organizations start from the configured default thresholds.

        Returns:
            The admin user
        """
        name = _clean_name(name, "organizationName")
        admin_name = _clean_name(admin_name, "name")
        admin_email = _clean_email(admin_email)

        if await self._organizations.get_by_name(name) is not None:
            raise ConflictException("Organization name already exists", {"organizationName": name})
        if await self._users.get_by_email(admin_email) is not None:
            raise ConflictException("Email already registered", {"email": admin_email})

        organization = await self._organizations.create(
            name, self._sla_defaults.config.default_thresholds
        )
        admin = await self._users.create(
            name=admin_name,
            email=admin_email,
            password_hash=password_hash,
            role=Role.ADMIN,
            organization_id=organization.id
        )
        await self._organizations.commit()

        logger.info(
            "Organization registered",
            extra={"organization_id": str(organization.id), "admin_id": str(admin.id)}
        )
        return admin

    async def list_organizations(self, actor: Actor) -> List[OrganizationSummary]:
        AccessGuard.require(actor, Capability.MANAGE_ORGANIZATIONS)
        return await self._organizations.list_with_counts()

    async def _organization_for_sla(self, actor: Actor, organization_id: Optional[UUID]) -> Any:
        AccessGuard.require(actor, Capability.MANAGE_SLA)
        resolved = AccessGuard.resolve_organization_id(actor, organization_id)
        organization = await self._organizations.get_by_id(resolved)
        if organization is None:
            raise ResourceNotFoundException("Organization", str(resolved))
        return organization

    async def get_sla_settings(self, actor: Actor, organization_id: Optional[UUID] = None) -> SLAThresholds:
        organization = await self._organization_for_sla(actor, organization_id)
        return SLAThresholds(
            sla_low_hours=organization.sla_low_hours,
            sla_medium_hours=organization.sla_medium_hours,
            sla_high_hours=organization.sla_high_hours,
        )

    async def update_sla_settings(
        self,
        actor: Actor,
        sla_low_hours: int,
        sla_medium_hours: int,
        sla_high_hours: int,
        organization_id: Optional[UUID] = None
    ) -> SLAThresholds:
        """
        Replace the organization's thresholds.

        Only tickets created afterwards use the new values.
        """
        AccessGuard.require(actor, Capability.MANAGE_SLA)
        try:
            thresholds = SLAThresholds(
                sla_low_hours=sla_low_hours,
                sla_medium_hours=sla_medium_hours,
                sla_high_hours=sla_high_hours,
            )
        except PydanticValidationError as e:
            raise ValidationException(
                "SLA hours must be between 1 and 720",
                {str(err["loc"][0]): err["msg"] for err in e.errors()}
            )

        organization = await self._organization_for_sla(actor, organization_id)
        organization.sla_low_hours = thresholds.sla_low_hours
        organization.sla_medium_hours = thresholds.sla_medium_hours
        organization.sla_high_hours = thresholds.sla_high_hours
        await self._organizations.commit()

        logger.info(
            "SLA settings updated",
            extra={
                "organization_id": str(organization.id),
                "actor_id": str(actor.id),
                "low": thresholds.sla_low_hours,
                "medium": thresholds.sla_medium_hours,
                "high": thresholds.sla_high_hours
            }
        )
        return thresholds

    async def delete_organization(self, actor: Actor, organization_id: UUID) -> None:
        """Remove an organization that owns no users and no live tickets."""
        AccessGuard.require(actor, Capability.MANAGE_ORGANIZATIONS)

        organization = await self._organizations.get_by_id(organization_id)
        if organization is None:
            raise ResourceNotFoundException("Organization", str(organization_id))

        users = await self._organizations.count_users(organization.id)
        tickets = await self._organizations.count_active_tickets(organization.id)
        if users or tickets:
            raise InvalidStateException(
                "Organization still has users or tickets",
                {"users": users, "tickets": tickets}
            )

        await self._organizations.delete(organization)
        await self._organizations.commit()

        logger.info("Organization deleted", extra={"organization_id": str(organization_id)})


class UserService:
    """User administration inside a tenant."""

    def __init__(self, users: IUserRepository, organizations: IOrganizationRepository):
        self._users = users
        self._organizations = organizations

    async def create_user(
        self,
        actor: Actor,
        name: str,
        email: str,
        role: Union[Role, str],
        password_hash: str,
        organization_id: Optional[UUID] = None
    ) -> Any:
        AccessGuard.require(actor, Capability.MANAGE_USERS)
        role = _parse_role(role)
        name = _clean_name(name, "name")
        email = _clean_email(email)

        if role == Role.SUPER_ADMIN:
            if not actor.is_super_admin:
                raise AuthorizationException("Only a super admin can create a super admin")
            target_org = None
        else:
            target_org = AccessGuard.resolve_organization_id(actor, organization_id)
            if await self._organizations.get_by_id(target_org) is None:
                raise ResourceNotFoundException("Organization", str(target_org))

        if await self._users.get_by_email(email) is not None:
            raise ConflictException("Email already registered", {"email": email})

        user = await self._users.create(
            name=name,
            email=email,
            password_hash=password_hash,
            role=role,
            organization_id=target_org
        )
        await self._users.commit()

        logger.info(
            "User created",
            extra={"user_id": str(user.id), "role": role.value, "actor_id": str(actor.id)}
        )
        return user

    async def list_users(self, actor: Actor, organization_id: Optional[UUID] = None) -> List[Any]:
        AccessGuard.require(actor, Capability.MANAGE_USERS)
        return await self._users.list(organization_id=AccessGuard.tenant_scope(actor, organization_id))

    async def list_agents(self, actor: Actor, organization_id: Optional[UUID] = None) -> List[Any]:
        AccessGuard.require(actor, Capability.LIST_AGENTS)
        return await self._users.list(
            organization_id=AccessGuard.tenant_scope(actor, organization_id),
            role=Role.AGENT
        )

    async def update_user_role(self, actor: Actor, user_id: UUID, role: Union[Role, str]) -> Any:
        AccessGuard.require(actor, Capability.MANAGE_USERS)
        role = _parse_role(role)

        target = await self._users.get_by_id(user_id)
        if target is None:
            raise ResourceNotFoundException("User", str(user_id))
        AccessGuard.ensure_can_change_role(actor, target, role)

        if role != Role.SUPER_ADMIN and target.organization_id is None:
            raise InvalidStateException("User has no organization", {"user_id": str(user_id)})

        previous = target.role
        target.role = role.value
        await self._users.commit()

        logger.info(
            "User role changed",
            extra={
                "user_id": str(target.id),
                "from_role": previous,
                "to_role": role.value,
                "actor_id": str(actor.id)
            }
        )
        return target
