"""
Ticket Domain Entities
======================

Read shapes returned by the ticket services, and the filter used by every
ticket query. Persistence rows are carried as-is in the `ticket`/`comment`
attributes.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Sequence
from uuid import UUID


@dataclass(frozen=True)
class UserSummary:
    """Public identity of a user embedded in ticket views."""
    id: UUID
    name: str
    email: str
    role: str

    @classmethod
    def of(cls, user: Any) -> Optional["UserSummary"]:
        if user is None:
            return None
        return cls(id=user.id, name=user.name, email=user.email, role=user.role)


@dataclass
class TicketDetail:
    """A ticket with its owner and assignee."""
    ticket: Any
    owner: Optional[UserSummary] = None
    assignee: Optional[UserSummary] = None
    attachments: List[Any] = field(default_factory=list)


@dataclass
class CommentView:
    """A comment with its author."""
    comment: Any
    author: Optional[UserSummary] = None


@dataclass
class AttachmentMeta:
    """Location of an uploaded file in attachment storage."""
    filename: str
    path: str
    mimetype: str
    size: Optional[int] = None


@dataclass
class TicketFilters:
    """
    Ticket query predicate. Deleted tickets are always excluded.

    sla_due_from / sla_due_to are inclusive, sla_due_before is exclusive.
    """
    organization_id: Optional[UUID] = None
    owner_id: Optional[UUID] = None
    status: Optional[str] = None
    statuses: Optional[Sequence[str]] = None
    priority: Optional[str] = None
    assigned_to_id: Optional[UUID] = None
    search: Optional[str] = None
    sla_due_from: Optional[datetime] = None
    sla_due_to: Optional[datetime] = None
    sla_due_before: Optional[datetime] = None


@dataclass
class TicketPage:
    """One page of a ticket listing."""
    items: List[Any] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass
class Workload:
    """Ticket counts for one agent."""
    agent: Optional[UserSummary] = None
    open: int = 0
    in_progress: int = 0
    resolved: int = 0
    total: int = 0


@dataclass
class DashboardStats:
    """Tenant-scoped ticket counters."""
    total: int
    open: int
    in_progress: int
    resolved: int
    closed: int
    high_priority: int
    medium_priority: int
    low_priority: int
    due_today: int
    breached: int
    at_risk: int
    my_workload: Optional[Workload] = None

    @property
    def assigned_to_me(self) -> int:
        return self.my_workload.total if self.my_workload else 0
