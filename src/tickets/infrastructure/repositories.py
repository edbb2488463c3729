"""
Ticket Infrastructure Repositories
===================================

Concrete implementations of the ticket repository interfaces using SQLAlchemy.

Every ticket query excludes soft-deleted rows, except the storage-level
get_including_deleted() lookup.
"""

from datetime import datetime
from typing import Any, List, Optional, Sequence
from uuid import UUID, uuid4

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.tickets.application.services import (
    IActivityLogReader,
    ICommentRepository,
    ITicketRepository,
)
from src.tickets.domain.entities import AttachmentMeta, TicketFilters
from src.tickets.infrastructure.models import (
    ActivityLogModel,
    AttachmentModel,
    CommentModel,
    TicketModel,
)
from src.config import TicketStatus


def _escape_like(term: str) -> str:
    # Wildcards in the search term match literally
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _ticket_conditions(filters: TicketFilters) -> list:
    conditions = [TicketModel.is_deleted.is_(False)]

    if filters.organization_id is not None:
        conditions.append(TicketModel.organization_id == filters.organization_id)
    if filters.owner_id is not None:
        conditions.append(TicketModel.user_id == filters.owner_id)
    if filters.status is not None:
        conditions.append(TicketModel.status == filters.status)
    if filters.statuses:
        conditions.append(TicketModel.status.in_(list(filters.statuses)))
    if filters.priority is not None:
        conditions.append(TicketModel.priority == filters.priority)
    if filters.assigned_to_id is not None:
        conditions.append(TicketModel.assigned_to_id == filters.assigned_to_id)
    if filters.search:
        pattern = f"%{_escape_like(filters.search.strip())}%"
        conditions.append(
            or_(
                TicketModel.title.ilike(pattern, escape="\\"),
                TicketModel.description.ilike(pattern, escape="\\")
            )
        )
    if filters.sla_due_from is not None:
        conditions.append(TicketModel.sla_due_at >= filters.sla_due_from)
    if filters.sla_due_to is not None:
        conditions.append(TicketModel.sla_due_at <= filters.sla_due_to)
    if filters.sla_due_before is not None:
        conditions.append(TicketModel.sla_due_at < filters.sla_due_before)

    return conditions


class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of ticket repository.

    Handles persistence of tickets and their attachment metadata.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(
        self,
        *,
        title: str,
        description: str,
        priority: str,
        organization_id: UUID,
        user_id: UUID,
        sla_due_at: datetime,
        created_at: datetime,
        attachments: Sequence[AttachmentMeta] = ()
    ) -> TicketModel:
        model = TicketModel(
            id=uuid4(),
            title=title,
            description=description,
            priority=priority,
            status=TicketStatus.OPEN.value,
            organization_id=organization_id,
            user_id=user_id,
            sla_due_at=sla_due_at,
            is_deleted=False,
            created_at=created_at
        )
        self._session.add(model)

        for meta in attachments:
            self._session.add(AttachmentModel(
                id=uuid4(),
                ticket_id=model.id,
                filename=meta.filename,
                path=meta.path,
                mimetype=meta.mimetype,
                size=meta.size,
                created_at=created_at
            ))

        await self._session.flush()
        return model

    async def get_active(self, ticket_id: UUID) -> Optional[TicketModel]:
        stmt = select(TicketModel).where(
            and_(TicketModel.id == ticket_id, TicketModel.is_deleted.is_(False))
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_including_deleted(self, ticket_id: UUID) -> Optional[TicketModel]:
        return await self._session.get(TicketModel, ticket_id)

    async def list(
        self,
        filters: TicketFilters,
        limit: Optional[int] = 100,
        offset: int = 0
    ) -> List[TicketModel]:
        stmt = (
            select(TicketModel)
            .where(and_(*_ticket_conditions(filters)))
            .order_by(TicketModel.created_at.desc())
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def count(self, filters: TicketFilters) -> int:
        stmt = select(func.count(TicketModel.id)).where(and_(*_ticket_conditions(filters)))
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def list_attachments(self, ticket_id: UUID) -> List[AttachmentModel]:
        stmt = (
            select(AttachmentModel)
            .where(AttachmentModel.ticket_id == ticket_id)
            .order_by(AttachmentModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def commit(self) -> None:
        await self._session.commit()


class SQLAlchemyCommentRepository(ICommentRepository):
    """SQLAlchemy implementation of comment repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(
        self,
        *,
        ticket_id: UUID,
        user_id: UUID,
        message: str,
        created_at: datetime
    ) -> CommentModel:
        model = CommentModel(
            id=uuid4(),
            ticket_id=ticket_id,
            user_id=user_id,
            message=message,
            created_at=created_at
        )
        self._session.add(model)
        await self._session.flush()
        return model

    async def list_for_ticket(self, ticket_id: UUID) -> List[CommentModel]:
        stmt = (
            select(CommentModel)
            .where(CommentModel.ticket_id == ticket_id)
            .order_by(CommentModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class SQLAlchemyActivityLogRepository(IActivityLogReader):
    """
    SQLAlchemy implementation of the activity log.

    Entries are only ever appended.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(
        self,
        *,
        ticket_id: UUID,
        user_id: UUID,
        action: str,
        detail: str,
        created_at: datetime
    ) -> ActivityLogModel:
        model = ActivityLogModel(
            id=uuid4(),
            ticket_id=ticket_id,
            user_id=user_id,
            action=action,
            detail=detail,
            created_at=created_at
        )
        self._session.add(model)
        await self._session.flush()
        return model

    async def list_for_ticket(self, ticket_id: UUID) -> List[ActivityLogModel]:
        stmt = (
            select(ActivityLogModel)
            .where(ActivityLogModel.ticket_id == ticket_id)
            .order_by(ActivityLogModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
