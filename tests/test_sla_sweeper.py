from contextlib import asynccontextmanager
from datetime import timedelta
from uuid import uuid4

import pytest

from src.config import ActivityAction, NotificationKind, Priority, TicketStatus
from src.core import RepositoryException
from src.sla.application import ISLABreachRepository, SLABreachSweeper
from src.sla.domain import BreachCandidate
from src.sla.infrastructure import SQLAlchemyBreachRepository
from src.tickets.application.services import IActivityLogWriter
from src.tickets.infrastructure import SQLAlchemyActivityLogRepository

from conftest import NOON, actor_for


async def open_ticket(service, owner, priority=Priority.HIGH):
    return await service.create_ticket(
        actor_for(owner), title="Server down", description="Production is unreachable", priority=priority
    )


# ========== Against the database ==========

@pytest.mark.asyncio
async def test_breached_ticket_is_escalated_once(ticket_service, sweeper, world, clock, dispatcher, notifier, session):
    ticket = await open_ticket(ticket_service, world.acme.user)
    clock.set(NOON + timedelta(hours=4, minutes=1))

    assert await sweeper.run_sla_breach_sweep() == 1
    await dispatcher.join()

    [sent] = notifier.of_kind(NotificationKind.SLA_BREACHED)
    assert sent.recipient_email == world.acme.user.email
    assert sent.fields["ticket_id"] == str(ticket.id)
    assert sent.fields["overdue_minutes"] == 1

    await session.refresh(ticket)
    assert ticket.sla_breach_notified_at == clock.now()

    entries = await SQLAlchemyActivityLogRepository(session).list_for_ticket(ticket.id)
    assert [e.action for e in entries] == [ActivityAction.SLA_BREACHED.value]
    assert entries[0].user_id == world.acme.user.id


@pytest.mark.asyncio
async def test_second_sweep_does_nothing(ticket_service, sweeper, world, clock, dispatcher, notifier):
    await open_ticket(ticket_service, world.acme.user)
    clock.set(NOON + timedelta(hours=5))

    assert await sweeper.run_sla_breach_sweep() == 1
    clock.advance(minutes=1)
    assert await sweeper.run_sla_breach_sweep() == 0
    await dispatcher.join()

    assert len(notifier.of_kind(NotificationKind.SLA_BREACHED)) == 1


@pytest.mark.asyncio
async def test_ticket_not_yet_due_is_left_alone(ticket_service, sweeper, world, clock):
    await open_ticket(ticket_service, world.acme.user)
    clock.set(NOON + timedelta(hours=4))

    # Due exactly now is not past due
    assert await sweeper.run_sla_breach_sweep() == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [TicketStatus.RESOLVED, TicketStatus.CLOSED])
async def test_finished_tickets_never_breach(ticket_service, sweeper, world, clock, dispatcher, notifier, status):
    ticket = await open_ticket(ticket_service, world.acme.user)
    await ticket_service.change_status(actor_for(world.acme.agent), ticket.id, status)
    await dispatcher.join()
    notifier.sent.clear()

    clock.set(NOON + timedelta(days=10))
    assert await sweeper.run_sla_breach_sweep() == 0
    await dispatcher.join()
    assert notifier.of_kind(NotificationKind.SLA_BREACHED) == []


@pytest.mark.asyncio
async def test_in_progress_tickets_breach(ticket_service, sweeper, world, clock):
    ticket = await open_ticket(ticket_service, world.acme.user)
    await ticket_service.change_status(actor_for(world.acme.agent), ticket.id, TicketStatus.IN_PROGRESS)

    clock.set(NOON + timedelta(hours=6))
    assert await sweeper.run_sla_breach_sweep() == 1


@pytest.mark.asyncio
async def test_deleted_tickets_never_breach(ticket_service, sweeper, world, clock):
    ticket = await open_ticket(ticket_service, world.acme.user)
    await ticket_service.soft_delete(actor_for(world.acme.user), ticket.id)

    clock.set(NOON + timedelta(days=10))
    assert await sweeper.run_sla_breach_sweep() == 0


@pytest.mark.asyncio
async def test_sweep_covers_every_tenant(ticket_service, sweeper, world, clock):
    await open_ticket(ticket_service, world.acme.user)
    await open_ticket(ticket_service, world.globex.user)
    await open_ticket(ticket_service, world.globex.other_user, Priority.LOW)

    clock.set(NOON + timedelta(hours=5))
    assert await sweeper.run_sla_breach_sweep() == 2


@pytest.mark.asyncio
async def test_reopened_ticket_keeps_its_breach_mark(ticket_service, sweeper, world, clock):
    ticket = await open_ticket(ticket_service, world.acme.user)
    clock.set(NOON + timedelta(hours=5))
    assert await sweeper.run_sla_breach_sweep() == 1

    agent = actor_for(world.acme.agent)
    await ticket_service.change_status(agent, ticket.id, TicketStatus.CLOSED)
    await ticket_service.change_status(agent, ticket.id, TicketStatus.OPEN)

    clock.advance(hours=1)
    assert await sweeper.run_sla_breach_sweep() == 0


# ========== Ticket closed between scan and mark ==========

@pytest.mark.asyncio
@pytest.mark.parametrize("close", ["resolve", "delete"])
async def test_gate_skips_ticket_closed_after_scan(ticket_service, world, clock, session, close):
    ticket = await open_ticket(ticket_service, world.acme.user)
    clock.set(NOON + timedelta(hours=5))
    repository = SQLAlchemyBreachRepository(session)

    [found] = await repository.find_breach_candidates(clock.now())
    assert found.ticket_id == ticket.id

    if close == "resolve":
        await ticket_service.change_status(actor_for(world.acme.agent), ticket.id, TicketStatus.RESOLVED)
    else:
        await ticket_service.soft_delete(actor_for(world.acme.user), ticket.id)

    assert await repository.mark_breach_notified(ticket.id, clock.now()) is False
    await session.refresh(ticket)
    assert ticket.sla_breach_notified_at is None


class ResolvingBreachRepository(SQLAlchemyBreachRepository):
    """Resolves every candidate right after the scan."""

    def __init__(self, session, resolve):
        super().__init__(session)
        self._resolve = resolve

    async def find_breach_candidates(self, now):
        candidates = await super().find_breach_candidates(now)
        for found in candidates:
            await self._resolve(found.ticket_id)
        return candidates


@pytest.mark.asyncio
async def test_ticket_resolved_mid_sweep_is_not_escalated(
    ticket_service, world, clock, session, dispatcher, notifier, activity_log
):
    ticket = await open_ticket(ticket_service, world.acme.user)
    clock.set(NOON + timedelta(hours=5))
    agent = actor_for(world.acme.agent)

    async def resolve(ticket_id):
        await ticket_service.change_status(agent, ticket_id, TicketStatus.RESOLVED)

    @asynccontextmanager
    async def scope():
        yield ResolvingBreachRepository(session, resolve)

    sweeper = SLABreachSweeper(
        repository_scope=scope,
        notifier=notifier,
        activity_log=activity_log,
        dispatcher=dispatcher,
        clock=clock
    )

    assert await sweeper.run_sla_breach_sweep() == 0
    await dispatcher.join()

    assert notifier.of_kind(NotificationKind.SLA_BREACHED) == []
    entries = await SQLAlchemyActivityLogRepository(session).list_for_ticket(ticket.id)
    assert [e.action for e in entries] == [ActivityAction.STATUS_CHANGED.value]


# ========== Failure handling ==========

def candidate(title: str) -> BreachCandidate:
    return BreachCandidate(
        ticket_id=uuid4(),
        title=title,
        sla_due_at=NOON - timedelta(hours=1),
        owner_id=uuid4(),
        owner_name="Owner",
        owner_email="owner@acme.test"
    )


class FakeBreachRepository(ISLABreachRepository):
    def __init__(self, candidates, failing=(), already_marked=()):
        self.candidates = list(candidates)
        self.failing = set(failing)
        self.already_marked = set(already_marked)
        self.marked = set()
        self.rollbacks = 0

    async def find_breach_candidates(self, now):
        return [c for c in self.candidates if c.ticket_id not in self.marked]

    async def mark_breach_notified(self, ticket_id, notified_at):
        if ticket_id in self.failing:
            raise RepositoryException("database unavailable")
        if ticket_id in self.already_marked:
            return False
        self.marked.add(ticket_id)
        return True

    async def rollback(self):
        self.rollbacks += 1


class RecordingActivityLog(IActivityLogWriter):
    def __init__(self):
        self.entries = []

    def record(self, *, ticket_id, user_id, action, detail, created_at=None):
        self.entries.append((ticket_id, action))


def sweeper_over(repository, notifier, activity_log, dispatcher, clock):
    @asynccontextmanager
    async def scope():
        yield repository

    return SLABreachSweeper(
        repository_scope=scope,
        notifier=notifier,
        activity_log=activity_log,
        dispatcher=dispatcher,
        clock=clock
    )


@pytest.mark.asyncio
async def test_failed_mark_keeps_ticket_for_next_sweep(notifier, dispatcher, clock):
    broken, healthy = candidate("broken"), candidate("healthy")
    repository = FakeBreachRepository([broken, healthy], failing=[broken.ticket_id])
    activity_log = RecordingActivityLog()
    sweeper = sweeper_over(repository, notifier, activity_log, dispatcher, clock)

    assert await sweeper.run_sla_breach_sweep() == 1
    await dispatcher.join()

    assert repository.marked == {healthy.ticket_id}
    assert repository.rollbacks == 1
    assert activity_log.entries == [(healthy.ticket_id, ActivityAction.SLA_BREACHED)]
    assert [n.fields["ticket_title"] for n in notifier.of_kind(NotificationKind.SLA_BREACHED)] == ["healthy"]

    repository.failing.clear()
    assert await sweeper.run_sla_breach_sweep() == 1
    await dispatcher.join()
    assert repository.marked == {healthy.ticket_id, broken.ticket_id}
    assert len(notifier.of_kind(NotificationKind.SLA_BREACHED)) == 2


@pytest.mark.asyncio
async def test_lost_race_is_not_counted(notifier, dispatcher, clock):
    raced = candidate("raced")
    repository = FakeBreachRepository([raced], already_marked=[raced.ticket_id])
    activity_log = RecordingActivityLog()
    sweeper = sweeper_over(repository, notifier, activity_log, dispatcher, clock)

    assert await sweeper.run_sla_breach_sweep() == 0
    assert activity_log.entries == []
    await dispatcher.join()
    assert notifier.of_kind(NotificationKind.SLA_BREACHED) == []


@pytest.mark.asyncio
async def test_sweep_survives_unreachable_store(notifier, dispatcher, clock):
    @asynccontextmanager
    async def broken_scope():
        raise RepositoryException("cannot connect")
        yield

    sweeper = SLABreachSweeper(
        repository_scope=broken_scope,
        notifier=notifier,
        activity_log=RecordingActivityLog(),
        dispatcher=dispatcher,
        clock=clock
    )

    assert await sweeper.run_sla_breach_sweep() == 0


@pytest.mark.asyncio
async def test_notification_failure_does_not_block_mark(notifier, dispatcher, clock):
    notifier.fail = True
    due = candidate("due")
    repository = FakeBreachRepository([due])
    sweeper = sweeper_over(repository, notifier, RecordingActivityLog(), dispatcher, clock)

    assert await sweeper.run_sla_breach_sweep() == 1
    await dispatcher.join()
    assert repository.marked == {due.ticket_id}
