"""
Activity Log Writer
===================

Best-effort, append-only audit trail.

record() only enqueues the write on the background dispatcher; the write
runs in its own session after the triggering operation has committed. A
failed write is logged and dropped, it never reaches the caller.
"""

from datetime import datetime
from functools import partial
from typing import AsyncContextManager, Callable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import ActivityAction
from src.core import Clock, system_clock
from src.infrastructure.database import get_session_context
from src.infrastructure.tasks import BackgroundDispatcher
from src.shared.infrastructure.logging import get_logger
from src.tickets.application.services import IActivityLogWriter
from src.tickets.infrastructure.repositories import SQLAlchemyActivityLogRepository

logger = get_logger(__name__)


class ActivityLogWriter(IActivityLogWriter):
    """Writes activity entries through the background dispatcher."""

    def __init__(
        self,
        dispatcher: BackgroundDispatcher,
        session_scope: Callable[[], AsyncContextManager[AsyncSession]] = get_session_context,
        clock: Clock = system_clock
    ):
        self._dispatcher = dispatcher
        self._session_scope = session_scope
        self._clock = clock

    def record(
        self,
        *,
        ticket_id: UUID,
        user_id: UUID,
        action: ActivityAction,
        detail: str,
        created_at: Optional[datetime] = None
    ) -> None:
        self._dispatcher.submit(
            partial(
                self._write,
                ticket_id=ticket_id,
                user_id=user_id,
                action=action,
                detail=detail,
                created_at=created_at or self._clock.now()
            ),
            name="activity_log",
            ticket_id=str(ticket_id),
            action=action.value
        )

    async def _write(
        self,
        *,
        ticket_id: UUID,
        user_id: UUID,
        action: ActivityAction,
        detail: str,
        created_at: datetime
    ) -> None:
        try:
            async with self._session_scope() as session:
                await SQLAlchemyActivityLogRepository(session).append(
                    ticket_id=ticket_id,
                    user_id=user_id,
                    action=action.value,
                    detail=detail,
                    created_at=created_at
                )
        except Exception as e:
            logger.error(
                "Activity log write failed",
                extra={
                    "ticket_id": str(ticket_id),
                    "action": action.value,
                    "error": str(e)
                }
            )
