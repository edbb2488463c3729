"""
Ticket Application Services
============================

The ticket state machine: every mutation of a ticket goes through here.

Each operation:
1. Checks the actor's role capability (fails fast, before any lookup)
2. Loads the ticket; absent, soft-deleted and other-tenant tickets are all
   reported as not found
3. Validates input and applies the change
4. Commits
5. Hands audit-log writes and notifications to the background dispatcher

Side effects never fail or delay the transition that triggered them.

Status moves freely between the four values (CLOSED -> OPEN included);
every change is audited.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union
from uuid import UUID

from src.access.domain import AccessGuard, Actor, Capability
from src.config import (
    OPEN_TICKET_STATUSES,
    ActivityAction,
    Priority,
    Role,
    TicketStatus,
)
from src.core import (
    Clock,
    InvalidStateException,
    ResourceNotFoundException,
    ValidationException,
    system_clock,
)
from src.shared.infrastructure.logging import get_logger
from src.sla.domain import SLADefaultsConfig, SLAPolicy
from src.tickets.domain.entities import (
    AttachmentMeta,
    CommentView,
    DashboardStats,
    TicketDetail,
    TicketFilters,
    TicketPage,
    UserSummary,
    Workload,
)

logger = get_logger(__name__)

TITLE_MIN_LENGTH = 3
DESCRIPTION_MIN_LENGTH = 5
COMMENT_MIN_LENGTH = 2
MAX_PAGE_SIZE = 100


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
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
    ) -> Any:
        """Create a ticket (OPEN, not deleted) with its attachment metadata."""

    @abstractmethod
    async def get_active(self, ticket_id: UUID) -> Optional[Any]:
        """Get a ticket unless it is soft-deleted."""

    @abstractmethod
    async def get_including_deleted(self, ticket_id: UUID) -> Optional[Any]:
        """Storage-level lookup, soft-deleted tickets included."""

    @abstractmethod
    async def list(self, filters: TicketFilters, limit: Optional[int] = 100, offset: int = 0) -> List[Any]:
        """List non-deleted tickets, newest first. No limit when `limit` is None."""

    @abstractmethod
    async def count(self, filters: TicketFilters) -> int:
        """Count non-deleted tickets."""

    @abstractmethod
    async def list_attachments(self, ticket_id: UUID) -> List[Any]:
        """Attachment metadata of a ticket, oldest first."""

    @abstractmethod
    async def commit(self) -> None:
        """Persist pending changes."""


class ICommentRepository(ABC):
    """Interface for comment data access."""

    @abstractmethod
    async def create(self, *, ticket_id: UUID, user_id: UUID, message: str, created_at: datetime) -> Any:
        """Append a comment."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: UUID) -> List[Any]:
        """Comments of a ticket, oldest first."""


class IActivityLogReader(ABC):
    """Interface for reading the audit trail."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: UUID) -> List[Any]:
        """Activity entries of a ticket, oldest first."""


class IActivityLogWriter(ABC):
    """Append-only, best-effort audit trail."""

    @abstractmethod
    def record(
        self,
        *,
        ticket_id: UUID,
        user_id: UUID,
        action: ActivityAction,
        detail: str,
        created_at: Optional[datetime] = None
    ) -> None:
        """Queue an entry. Never raises and never waits for the write."""


class IUserDirectory(ABC):
    """Interface for user lookups needed by ticket operations."""

    @abstractmethod
    async def get_by_id(self, user_id: UUID) -> Optional[Any]:
        """Get a user."""

    @abstractmethod
    async def get_many(self, user_ids: Iterable[UUID]) -> Dict[UUID, Any]:
        """Get several users keyed by id."""

    @abstractmethod
    async def list(self, organization_id: Optional[UUID] = None, role: Optional[Role] = None) -> List[Any]:
        """List users, optionally by organization and role, ordered by name."""


class IOrganizationLookup(ABC):
    """Interface for reading organization SLA thresholds."""

    @abstractmethod
    async def get_by_id(self, organization_id: UUID) -> Optional[Any]:
        """Get an organization."""


class ITicketNotifier(ABC):
    """Fire-and-forget ticket notifications."""

    @abstractmethod
    def status_changed(self, owner: Any, ticket: Any) -> None:
        """Tell the owner their ticket changed status."""

    @abstractmethod
    def assigned(self, owner: Any, agent: Any, ticket: Any) -> None:
        """Tell the owner, then the agent, about an assignment."""


# ========== Helpers ==========

def _parse_enum(enum_cls, value: Any, field_name: str):
    try:
        return enum_cls(getattr(value, "value", value))
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationException(
            f"{field_name} must be one of {allowed}",
            {field_name: f"must be one of {allowed}"}
        )


def _parse_due_date(value: Union[str, datetime, None]) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValidationException("Invalid due date", {"dueDate": "must be an ISO 8601 date"})
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ========== Application Services ==========

class TicketService:
    """
    Ticket lifecycle operations.

    All entry points take the acting user explicitly.
    """

    def __init__(
        self,
        tickets: ITicketRepository,
        comments: ICommentRepository,
        activity_reader: IActivityLogReader,
        users: IUserDirectory,
        organizations: IOrganizationLookup,
        activity_log: IActivityLogWriter,
        notifier: ITicketNotifier,
        clock: Clock = system_clock
    ):
        self._tickets = tickets
        self._comments = comments
        self._activity_reader = activity_reader
        self._users = users
        self._organizations = organizations
        self._activity_log = activity_log
        self._notifier = notifier
        self._clock = clock

    # ----- queries -----

    async def _load(self, actor: Actor, ticket_id: UUID) -> Any:
        ticket = await self._tickets.get_active(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", str(ticket_id))
        AccessGuard.ensure_in_tenant(actor, ticket.organization_id, "Ticket", ticket_id)
        return ticket

    async def _detail(self, ticket: Any) -> TicketDetail:
        people = await self._users.get_many(
            [uid for uid in (ticket.user_id, ticket.assigned_to_id) if uid is not None]
        )
        return TicketDetail(
            ticket=ticket,
            owner=UserSummary.of(people.get(ticket.user_id)),
            assignee=UserSummary.of(people.get(ticket.assigned_to_id)) if ticket.assigned_to_id else None,
            attachments=await self._tickets.list_attachments(ticket.id)
        )

    async def get_ticket(self, actor: Actor, ticket_id: UUID) -> TicketDetail:
        ticket = await self._load(actor, ticket_id)
        AccessGuard.ensure_can_read_ticket(actor, ticket)
        return await self._detail(ticket)

    async def get_my_tickets(self, actor: Actor) -> List[Any]:
        """Every ticket the actor opened, newest first."""
        return await self._tickets.list(TicketFilters(owner_id=actor.id), limit=None)

    async def get_all_tickets(
        self,
        actor: Actor,
        filters: Optional[TicketFilters] = None,
        page: int = 1,
        limit: int = 10
    ) -> TicketPage:
        """
        Tenant-scoped listing for staff.

        The organization in `filters` is honoured for SUPER_ADMIN only.
        """
        AccessGuard.require(actor, Capability.VIEW_ALL_TICKETS)

        filters = filters or TicketFilters()
        filters.organization_id = AccessGuard.tenant_scope(actor, filters.organization_id)
        filters.owner_id = None
        if filters.status is not None:
            filters.status = _parse_enum(TicketStatus, filters.status, "status").value
        if filters.priority is not None:
            filters.priority = _parse_enum(Priority, filters.priority, "priority").value

        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)

        total = await self._tickets.count(filters)
        items = await self._tickets.list(filters, limit=limit, offset=(page - 1) * limit)
        return TicketPage(items=items, total=total, page=page, limit=limit)

    async def list_comments(self, actor: Actor, ticket_id: UUID) -> List[CommentView]:
        ticket = await self._load(actor, ticket_id)
        AccessGuard.ensure_can_read_ticket(actor, ticket)

        comments = await self._comments.list_for_ticket(ticket.id)
        authors = await self._users.get_many({c.user_id for c in comments})
        return [CommentView(comment=c, author=UserSummary.of(authors.get(c.user_id))) for c in comments]

    async def list_activity(self, actor: Actor, ticket_id: UUID) -> List[Any]:
        ticket = await self._load(actor, ticket_id)
        AccessGuard.ensure_can_read_ticket(actor, ticket)
        return await self._activity_reader.list_for_ticket(ticket.id)

    # ----- mutations -----

    async def create_ticket(
        self,
        actor: Actor,
        title: str,
        description: str,
        priority: Union[Priority, str, None] = None,
        attachments: Sequence[AttachmentMeta] = ()
    ) -> Any:
        """
        Open a ticket owned by the actor.

        The SLA due time is fixed here from the organization's current
        thresholds and is never recomputed afterwards.
        """
        AccessGuard.require(actor, Capability.CREATE_TICKET)

        errors = {}
        title = (title or "").strip()
        description = (description or "").strip()
        if len(title) < TITLE_MIN_LENGTH:
            errors["title"] = f"Title must be at least {TITLE_MIN_LENGTH} characters"
        if len(description) < DESCRIPTION_MIN_LENGTH:
            errors["description"] = f"Description must be at least {DESCRIPTION_MIN_LENGTH} characters"
        if errors:
            raise ValidationException("Validation Error", errors)

        priority = _parse_enum(Priority, priority, "priority") if priority else Priority.MEDIUM

        if actor.organization_id is None:
            raise InvalidStateException("Ticket creator has no organization")
        organization = await self._organizations.get_by_id(actor.organization_id)
        if organization is None:
            raise ResourceNotFoundException("Organization", str(actor.organization_id))

        created_at = self._clock.now()
        ticket = await self._tickets.create(
            title=title,
            description=description,
            priority=priority.value,
            organization_id=organization.id,
            user_id=actor.id,
            sla_due_at=SLAPolicy.due_at_for(organization, priority, created_at),
            created_at=created_at,
            attachments=attachments
        )
        await self._tickets.commit()

        logger.info(
            "Ticket created",
            extra={
                "ticket_id": str(ticket.id),
                "priority": ticket.priority,
                "sla_due_at": ticket.sla_due_at.isoformat()
            }
        )
        return ticket

    async def change_status(self, actor: Actor, ticket_id: UUID, new_status: Union[TicketStatus, str]) -> Any:
        AccessGuard.require(actor, Capability.CHANGE_STATUS)
        new_status = _parse_enum(TicketStatus, new_status, "status")
        ticket = await self._load(actor, ticket_id)

        previous = ticket.status
        ticket.status = new_status.value
        await self._tickets.commit()

        self._activity_log.record(
            ticket_id=ticket.id,
            user_id=actor.id,
            action=ActivityAction.STATUS_CHANGED,
            detail=f"Status changed from {previous} to {new_status.value}",
            created_at=self._clock.now()
        )
        owner = await self._users.get_by_id(ticket.user_id)
        if owner is not None:
            self._notifier.status_changed(owner, ticket)
        return ticket

    async def change_priority(self, actor: Actor, ticket_id: UUID, new_priority: Union[Priority, str]) -> Any:
        """Update the priority. The SLA due time stays as computed at creation."""
        AccessGuard.require(actor, Capability.CHANGE_PRIORITY)
        new_priority = _parse_enum(Priority, new_priority, "priority")
        ticket = await self._load(actor, ticket_id)

        previous = ticket.priority
        ticket.priority = new_priority.value
        await self._tickets.commit()

        self._activity_log.record(
            ticket_id=ticket.id,
            user_id=actor.id,
            action=ActivityAction.PRIORITY_CHANGED,
            detail=f"Priority changed from {previous} to {new_priority.value}",
            created_at=self._clock.now()
        )
        return ticket

    async def assign(self, actor: Actor, ticket_id: UUID, agent_id: Optional[UUID]) -> TicketDetail:
        """Assign to an agent, or unassign when agent_id is None."""
        AccessGuard.require(actor, Capability.ASSIGN_TICKET)
        ticket = await self._load(actor, ticket_id)

        if agent_id is None:
            ticket.assigned_to_id = None
            await self._tickets.commit()
            self._activity_log.record(
                ticket_id=ticket.id,
                user_id=actor.id,
                action=ActivityAction.UNASSIGNED,
                detail="Ticket unassigned",
                created_at=self._clock.now()
            )
            return await self._detail(ticket)

        agent = await self._users.get_by_id(agent_id)
        if agent is None:
            raise ResourceNotFoundException("Agent", str(agent_id))
        AccessGuard.ensure_assignable(actor, ticket, agent)

        ticket.assigned_to_id = agent.id
        await self._tickets.commit()

        self._activity_log.record(
            ticket_id=ticket.id,
            user_id=actor.id,
            action=ActivityAction.ASSIGNED,
            detail=f"Assigned to {agent.name}",
            created_at=self._clock.now()
        )
        owner = await self._users.get_by_id(ticket.user_id)
        if owner is not None:
            self._notifier.assigned(owner, agent, ticket)
        return await self._detail(ticket)

    async def set_due_date(
        self,
        actor: Actor,
        ticket_id: UUID,
        due_date: Union[str, datetime, None]
    ) -> Any:
        AccessGuard.require(actor, Capability.SET_DUE_DATE)
        parsed = _parse_due_date(due_date)
        ticket = await self._load(actor, ticket_id)

        ticket.due_date = parsed
        await self._tickets.commit()

        detail = (
            f"Due date set to {parsed.strftime('%b %d, %Y')}" if parsed else "Due date cleared"
        )
        self._activity_log.record(
            ticket_id=ticket.id,
            user_id=actor.id,
            action=ActivityAction.DUE_DATE_SET,
            detail=detail,
            created_at=self._clock.now()
        )
        return ticket

    async def soft_delete(self, actor: Actor, ticket_id: UUID) -> None:
        """Hide a ticket from every query; the row and its history stay."""
        ticket = await self._load(actor, ticket_id)
        AccessGuard.ensure_can_delete_ticket(actor, ticket)

        ticket.is_deleted = True
        await self._tickets.commit()

        logger.info(
            "Ticket deleted",
            extra={"ticket_id": str(ticket.id), "actor_id": str(actor.id)}
        )

    async def add_comment(self, actor: Actor, ticket_id: UUID, message: str) -> CommentView:
        message = (message or "").strip()
        if len(message) < COMMENT_MIN_LENGTH:
            raise ValidationException(
                "Validation Error",
                {"message": f"Comment must be at least {COMMENT_MIN_LENGTH} characters"}
            )
        ticket = await self._load(actor, ticket_id)
        AccessGuard.ensure_can_comment(actor, ticket)

        comment = await self._comments.create(
            ticket_id=ticket.id,
            user_id=actor.id,
            message=message,
            created_at=self._clock.now()
        )
        await self._tickets.commit()

        self._activity_log.record(
            ticket_id=ticket.id,
            user_id=actor.id,
            action=ActivityAction.COMMENTED,
            detail="Comment added",
            created_at=comment.created_at
        )
        author = await self._users.get_by_id(actor.id)
        return CommentView(comment=comment, author=UserSummary.of(author))


class DashboardService:
    """Ticket counters and agent workload for staff dashboards."""

    def __init__(
        self,
        tickets: ITicketRepository,
        users: IUserDirectory,
        sla_defaults: Any,
        clock: Clock = system_clock
    ):
        self._tickets = tickets
        self._users = users
        self._sla_defaults = sla_defaults
        self._clock = clock

    async def _workload(self, scope: TicketFilters) -> Workload:
        assigned = scope.assigned_to_id
        base = dict(organization_id=scope.organization_id, assigned_to_id=assigned)
        return Workload(
            open=await self._tickets.count(TicketFilters(status=TicketStatus.OPEN.value, **base)),
            in_progress=await self._tickets.count(TicketFilters(status=TicketStatus.IN_PROGRESS.value, **base)),
            resolved=await self._tickets.count(TicketFilters(status=TicketStatus.RESOLVED.value, **base)),
            total=await self._tickets.count(TicketFilters(**base)),
        )

    async def get_stats(self, actor: Actor, organization_id: Optional[UUID] = None) -> DashboardStats:
        AccessGuard.require(actor, Capability.VIEW_DASHBOARD)
        org = AccessGuard.tenant_scope(actor, organization_id)

        config: SLADefaultsConfig = self._sla_defaults.config
        now = self._clock.now()
        end_of_day = now.replace(hour=23, minute=59, second=59, microsecond=999999)
        at_risk_end = now + timedelta(hours=config.at_risk_window_hours)
        open_statuses = [s.value for s in OPEN_TICKET_STATUSES]

        async def count(**criteria) -> int:
            return await self._tickets.count(TicketFilters(organization_id=org, **criteria))

        my_workload = None
        if actor.role == Role.AGENT:
            my_workload = await self._workload(
                TicketFilters(organization_id=org, assigned_to_id=actor.id)
            )

        return DashboardStats(
            total=await count(),
            open=await count(status=TicketStatus.OPEN.value),
            in_progress=await count(status=TicketStatus.IN_PROGRESS.value),
            resolved=await count(status=TicketStatus.RESOLVED.value),
            closed=await count(status=TicketStatus.CLOSED.value),
            high_priority=await count(priority=Priority.HIGH.value),
            medium_priority=await count(priority=Priority.MEDIUM.value),
            low_priority=await count(priority=Priority.LOW.value),
            due_today=await count(statuses=open_statuses, sla_due_from=now, sla_due_to=end_of_day),
            breached=await count(statuses=open_statuses, sla_due_before=now),
            at_risk=await count(statuses=open_statuses, sla_due_from=now, sla_due_to=at_risk_end),
            my_workload=my_workload,
        )

    async def get_workload(self, actor: Actor, organization_id: Optional[UUID] = None) -> List[Workload]:
        AccessGuard.require(actor, Capability.VIEW_WORKLOAD)
        org = AccessGuard.tenant_scope(actor, organization_id)

        agents = await self._users.list(organization_id=org, role=Role.AGENT)
        result = []
        for agent in agents:
            workload = await self._workload(TicketFilters(assigned_to_id=agent.id))
            workload.agent = UserSummary.of(agent)
            result.append(workload)
        return result
