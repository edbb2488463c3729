"""
SLA Infrastructure Repositories
=================================

Breach detection queries and the notified-at gate.

The gate is a single-row conditional UPDATE keyed on sla_breach_notified_at
being null and the ticket still being open, so overlapping sweeps cannot both
mark the same ticket and a ticket resolved after the scan is left alone.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, List
from uuid import UUID

from sqlalchemy import and_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import OPEN_TICKET_STATUSES
from src.core import RepositoryException
from src.infrastructure.database import get_session_context
from src.organizations.infrastructure.models import UserModel
from src.sla.application import ISLABreachRepository
from src.sla.domain import BreachCandidate
from src.tickets.infrastructure.models import TicketModel


class SQLAlchemyBreachRepository(ISLABreachRepository):
    """
    SQLAlchemy implementation of breach repository.

    Commits per ticket so one failure never undoes another ticket's mark.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def find_breach_candidates(self, now: datetime) -> List[BreachCandidate]:
        stmt = (
            select(
                TicketModel.id,
                TicketModel.title,
                TicketModel.sla_due_at,
                UserModel.id,
                UserModel.name,
                UserModel.email
            )
            .join(UserModel, UserModel.id == TicketModel.user_id)
            .where(
                and_(
                    TicketModel.is_deleted.is_(False),
                    TicketModel.status.in_([s.value for s in OPEN_TICKET_STATUSES]),
                    TicketModel.sla_due_at < now,
                    TicketModel.sla_breach_notified_at.is_(None)
                )
            )
            .order_by(TicketModel.sla_due_at.asc())
        )
        result = await self._session.execute(stmt)
        return [
            BreachCandidate(
                ticket_id=ticket_id,
                title=title,
                sla_due_at=sla_due_at,
                owner_id=owner_id,
                owner_name=owner_name,
                owner_email=owner_email
            )
            for ticket_id, title, sla_due_at, owner_id, owner_name, owner_email in result.all()
        ]

    async def mark_breach_notified(self, ticket_id: UUID, notified_at: datetime) -> bool:
        stmt = (
            update(TicketModel)
            .where(
                and_(
                    TicketModel.id == ticket_id,
                    TicketModel.is_deleted.is_(False),
                    TicketModel.status.in_([s.value for s in OPEN_TICKET_STATUSES]),
                    TicketModel.sla_breach_notified_at.is_(None)
                )
            )
            .values(sla_breach_notified_at=notified_at)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._session.execute(stmt)
            await self._session.commit()
        except SQLAlchemyError as e:
            raise RepositoryException(
                "Failed to mark SLA breach as notified",
                {"ticket_id": str(ticket_id), "error": str(e)}
            ) from e
        return result.rowcount == 1

    async def rollback(self) -> None:
        await self._session.rollback()


@asynccontextmanager
async def breach_repository_scope() -> AsyncGenerator[SQLAlchemyBreachRepository, None]:
    """One session per sweep."""
    async with get_session_context() as session:
        yield SQLAlchemyBreachRepository(session)
