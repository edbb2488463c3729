"""
Organization Infrastructure Repositories
========================================

SQLAlchemy implementations of the organization and user repositories.

They also serve the ticket module's read-only lookups (IOrganizationLookup,
IUserDirectory).
"""

from typing import Dict, Iterable, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Role
from src.core import ConflictException
from src.organizations.application.services import IOrganizationRepository, IUserRepository
from src.organizations.domain import OrganizationSummary
from src.organizations.infrastructure.models import OrganizationModel, UserModel
from src.sla.domain import SLAThresholds
from src.tickets.application.services import IOrganizationLookup, IUserDirectory
from src.tickets.infrastructure.models import TicketModel


class SQLAlchemyOrganizationRepository(IOrganizationRepository, IOrganizationLookup):
    """SQLAlchemy implementation of organization repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, organization_id: UUID) -> Optional[OrganizationModel]:
        return await self._session.get(OrganizationModel, organization_id)

    async def get_by_name(self, name: str) -> Optional[OrganizationModel]:
        stmt = select(OrganizationModel).where(OrganizationModel.name == name)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, name: str, thresholds: SLAThresholds) -> OrganizationModel:
        model = OrganizationModel(
            id=uuid4(),
            name=name,
            sla_low_hours=thresholds.sla_low_hours,
            sla_medium_hours=thresholds.sla_medium_hours,
            sla_high_hours=thresholds.sla_high_hours
        )
        self._session.add(model)
        await self._session.flush()
        return model

    async def list_with_counts(self) -> List[OrganizationSummary]:
        user_counts = (
            select(UserModel.organization_id, func.count(UserModel.id).label("n"))
            .group_by(UserModel.organization_id)
            .subquery()
        )
        ticket_counts = (
            select(TicketModel.organization_id, func.count(TicketModel.id).label("n"))
            .where(TicketModel.is_deleted.is_(False))
            .group_by(TicketModel.organization_id)
            .subquery()
        )
        stmt = (
            select(
                OrganizationModel,
                func.coalesce(user_counts.c.n, 0),
                func.coalesce(ticket_counts.c.n, 0)
            )
            .outerjoin(user_counts, user_counts.c.organization_id == OrganizationModel.id)
            .outerjoin(ticket_counts, ticket_counts.c.organization_id == OrganizationModel.id)
            .order_by(OrganizationModel.name.asc())
        )
        result = await self._session.execute(stmt)
        return [
            OrganizationSummary(organization=org, user_count=users, ticket_count=tickets)
            for org, users, tickets in result.all()
        ]

    async def count_users(self, organization_id: UUID) -> int:
        stmt = select(func.count(UserModel.id)).where(UserModel.organization_id == organization_id)
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def count_active_tickets(self, organization_id: UUID) -> int:
        stmt = select(func.count(TicketModel.id)).where(
            and_(
                TicketModel.organization_id == organization_id,
                TicketModel.is_deleted.is_(False)
            )
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def delete(self, organization: OrganizationModel) -> None:
        await self._session.delete(organization)
        await self._session.flush()

    async def commit(self) -> None:
        try:
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            raise ConflictException("Organization name or email already exists") from e


class SQLAlchemyUserRepository(IUserRepository, IUserDirectory):
    """SQLAlchemy implementation of user repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, user_id: UUID) -> Optional[UserModel]:
        return await self._session.get(UserModel, user_id)

    async def get_many(self, user_ids: Iterable[UUID]) -> Dict[UUID, UserModel]:
        ids = {uid for uid in user_ids if uid is not None}
        if not ids:
            return {}
        stmt = select(UserModel).where(UserModel.id.in_(ids))
        result = await self._session.execute(stmt)
        return {user.id: user for user in result.scalars().all()}

    async def get_by_email(self, email: str) -> Optional[UserModel]:
        stmt = select(UserModel).where(func.lower(UserModel.email) == email.strip().lower())
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        *,
        name: str,
        email: str,
        password_hash: str,
        role: Role,
        organization_id: Optional[UUID]
    ) -> UserModel:
        model = UserModel(
            id=uuid4(),
            name=name,
            email=email,
            password_hash=password_hash,
            role=role.value,
            organization_id=organization_id
        )
        self._session.add(model)
        await self._session.flush()
        return model

    async def list(
        self,
        organization_id: Optional[UUID] = None,
        role: Optional[Role] = None
    ) -> List[UserModel]:
        stmt = select(UserModel)
        if organization_id is not None:
            stmt = stmt.where(UserModel.organization_id == organization_id)
        if role is not None:
            stmt = stmt.where(UserModel.role == role.value)
        stmt = stmt.order_by(UserModel.name.asc())

        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def commit(self) -> None:
        try:
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            raise ConflictException("Organization name or email already exists") from e
