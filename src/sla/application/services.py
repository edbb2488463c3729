"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

The breach sweeper is the only recurring job of the system. Each sweep is a
fresh, complete scan; nothing about an in-flight sweep is persisted.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from functools import partial
from typing import AsyncContextManager, Callable, List
from uuid import UUID

from src.config import ActivityAction, NotificationKind
from src.core import Clock, system_clock
from src.infrastructure.notifications import INotifier, Notification
from src.infrastructure.tasks import BackgroundDispatcher
from src.shared.infrastructure.logging import get_logger
from src.sla.domain import BreachCandidate, SLADefaultsConfig
from src.tickets.application.services import IActivityLogWriter

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ISLABreachRepository(ABC):
    """Interface for breach detection data access."""

    @abstractmethod
    async def find_breach_candidates(self, now: datetime) -> List[BreachCandidate]:
        """Non-deleted OPEN/IN_PROGRESS tickets due before `now` and never notified."""

    @abstractmethod
    async def mark_breach_notified(self, ticket_id: UUID, notified_at: datetime) -> bool:
        """
        Set sla_breach_notified_at if it is still null, the ticket is
        still OPEN/IN_PROGRESS and not deleted, and persist it.

        Returns:
            True if this call set the timestamp, False otherwise
        """

    @abstractmethod
    async def rollback(self) -> None:
        """Discard a failed unit of work so the next ticket starts clean."""


class ISLADefaultsProvider(ABC):
    """Interface for SLA defaults access."""

    @property
    @abstractmethod
    def config(self) -> SLADefaultsConfig:
        """Current SLA defaults."""


# ========== Application Services ==========

class SLABreachSweeper:
    """
    Detects SLA breaches and escalates each of them exactly once.

    Per candidate ticket, in order:
    1. Conditionally set sla_breach_notified_at (null -> now) while the ticket
       is still open and not deleted
    2. Enqueue the breach escalation to the ticket owner (fire-and-forget)
    3. Append an SLA_BREACHED activity entry

    Only the sweep whose update took the row escalates, so overlapping sweeps
    never notify twice. If step 1 fails the ticket stays a candidate for the
    next sweep.
    """

    def __init__(
        self,
        repository_scope: Callable[[], AsyncContextManager[ISLABreachRepository]],
        notifier: INotifier,
        activity_log: IActivityLogWriter,
        dispatcher: BackgroundDispatcher,
        clock: Clock = system_clock
    ):
        self._repository_scope = repository_scope
        self._notifier = notifier
        self._activity_log = activity_log
        self._dispatcher = dispatcher
        self._clock = clock

    async def run_sla_breach_sweep(self) -> int:
        """
        Run one sweep.

        Returns:
            Number of tickets marked as breach-notified by this sweep
        """
        now = self._clock.now()
        processed = 0
        failed = 0

        candidates = []
        try:
            async with self._repository_scope() as repository:
                candidates = await repository.find_breach_candidates(now)

                for candidate in candidates:
                    try:
                        if await self._process(repository, candidate, now):
                            processed += 1
                    except Exception as e:
                        failed += 1
                        logger.error(
                            "SLA breach processing failed",
                            extra={"ticket_id": str(candidate.ticket_id), "error": str(e)}
                        )
                        await repository.rollback()
        except Exception as e:
            # Next tick retries with a fresh scan
            logger.error("SLA sweep aborted", extra={"error": str(e), "processed": processed})
            return processed

        if candidates:
            logger.info(
                "SLA sweep finished",
                extra={
                    "candidates": len(candidates),
                    "processed": processed,
                    "failed": failed
                }
            )

        return processed

    async def _process(
        self,
        repository: ISLABreachRepository,
        candidate: BreachCandidate,
        now: datetime
    ) -> bool:
        marked = await repository.mark_breach_notified(candidate.ticket_id, now)
        if not marked:
            # Already notified by another sweep, or closed since the scan
            logger.debug(
                "SLA breach not marked",
                extra={"ticket_id": str(candidate.ticket_id)}
            )
            return False

        self._escalate(candidate, now)
        self._activity_log.record(
            ticket_id=candidate.ticket_id,
            user_id=candidate.owner_id,
            action=ActivityAction.SLA_BREACHED,
            detail="SLA breached and escalation notification sent",
            created_at=now
        )
        return True

    def _escalate(self, candidate: BreachCandidate, now: datetime) -> None:
        notification = Notification(
            kind=NotificationKind.SLA_BREACHED,
            recipient_email=candidate.owner_email,
            recipient_name=candidate.owner_name,
            fields={
                "ticket_id": str(candidate.ticket_id),
                "ticket_title": candidate.title,
                "sla_due_at": candidate.sla_due_at.isoformat(),
                "overdue_minutes": int(candidate.overdue_by(now) // 60),
            }
        )
        self._dispatcher.submit(
            partial(self._notifier.send, notification),
            name="sla_breach_notification",
            ticket_id=str(candidate.ticket_id)
        )
