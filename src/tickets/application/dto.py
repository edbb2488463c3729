"""
Ticket Application DTOs
========================

Request bodies and response shapes for the ticket and dashboard APIs.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from src.config import Priority, TicketStatus
from src.shared.api.schemas import CamelModel
from src.tickets.domain.entities import (
    CommentView,
    DashboardStats,
    TicketDetail,
    TicketPage,
    UserSummary,
    Workload,
)


# ========== Request DTOs ==========

class AttachmentIn(CamelModel):
    """Metadata of a file already written to attachment storage."""
    filename: str = Field(..., min_length=1, max_length=255)
    path: str = Field(..., min_length=1, max_length=1024)
    mimetype: str = Field(..., min_length=1, max_length=255)
    size: Optional[int] = Field(None, ge=0)


class CreateTicketRequest(CamelModel):
    title: str = Field(..., description="At least 3 characters")
    description: str = Field(..., description="At least 5 characters")
    priority: Optional[Priority] = Field(None, description="Defaults to MEDIUM")
    attachments: List[AttachmentIn] = Field(default_factory=list)


class UpdateStatusRequest(CamelModel):
    status: TicketStatus


class UpdatePriorityRequest(CamelModel):
    priority: Priority


class AssignTicketRequest(CamelModel):
    assigned_to_id: Optional[UUID] = Field(None, description="Agent id, null to unassign")


class SetDueDateRequest(CamelModel):
    due_date: Optional[str] = Field(None, description="ISO 8601 date, null to clear")


class AddCommentRequest(CamelModel):
    message: str = Field(..., description="At least 2 characters")


# ========== Response DTOs ==========

class UserSummaryResponse(CamelModel):
    id: UUID
    name: str
    email: str
    role: str

    @classmethod
    def of(cls, summary: Optional[UserSummary]) -> Optional["UserSummaryResponse"]:
        return cls.model_validate(summary) if summary else None


class AttachmentResponse(CamelModel):
    id: UUID
    filename: str
    path: str
    mimetype: str
    size: Optional[int] = None


class TicketResponse(CamelModel):
    id: UUID
    title: str
    description: str
    priority: str
    status: str
    organization_id: UUID
    user_id: UUID
    assigned_to_id: Optional[UUID] = None
    due_date: Optional[datetime] = None
    sla_due_at: datetime
    sla_breach_notified_at: Optional[datetime] = None
    created_at: datetime


class TicketDetailResponse(TicketResponse):
    user: Optional[UserSummaryResponse] = None
    assigned_to: Optional[UserSummaryResponse] = None
    attachments: List[AttachmentResponse] = Field(default_factory=list)

    @classmethod
    def from_detail(cls, detail: TicketDetail) -> "TicketDetailResponse":
        base = TicketResponse.model_validate(detail.ticket)
        return cls(
            **base.model_dump(),
            user=UserSummaryResponse.of(detail.owner),
            assigned_to=UserSummaryResponse.of(detail.assignee),
            attachments=[AttachmentResponse.model_validate(a) for a in detail.attachments],
        )


class TicketPageResponse(CamelModel):
    tickets: List[TicketResponse]
    total: int
    page: int
    limit: int
    total_pages: int

    @classmethod
    def from_page(cls, page: TicketPage) -> "TicketPageResponse":
        return cls(
            tickets=[TicketResponse.model_validate(t) for t in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
            total_pages=page.total_pages,
        )


class CommentResponse(CamelModel):
    id: UUID
    ticket_id: UUID
    message: str
    created_at: datetime
    user: Optional[UserSummaryResponse] = None

    @classmethod
    def from_view(cls, view: CommentView) -> "CommentResponse":
        comment = view.comment
        return cls(
            id=comment.id,
            ticket_id=comment.ticket_id,
            message=comment.message,
            created_at=comment.created_at,
            user=UserSummaryResponse.of(view.author),
        )


class ActivityResponse(CamelModel):
    id: UUID
    ticket_id: UUID
    user_id: UUID
    action: str
    detail: str
    created_at: datetime


class WorkloadResponse(CamelModel):
    agent: Optional[UserSummaryResponse] = None
    open: int
    in_progress: int
    resolved: int
    total: int

    @classmethod
    def from_workload(cls, workload: Workload) -> "WorkloadResponse":
        return cls(
            agent=UserSummaryResponse.of(workload.agent),
            open=workload.open,
            in_progress=workload.in_progress,
            resolved=workload.resolved,
            total=workload.total,
        )


class DashboardStatsResponse(CamelModel):
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
    assigned_to_me: int = 0
    my_workload: Optional[WorkloadResponse] = None

    @classmethod
    def from_stats(cls, stats: DashboardStats) -> "DashboardStatsResponse":
        return cls(
            total=stats.total,
            open=stats.open,
            in_progress=stats.in_progress,
            resolved=stats.resolved,
            closed=stats.closed,
            high_priority=stats.high_priority,
            medium_priority=stats.medium_priority,
            low_priority=stats.low_priority,
            due_today=stats.due_today,
            breached=stats.breached,
            at_risk=stats.at_risk,
            assigned_to_me=stats.assigned_to_me,
            my_workload=(
                WorkloadResponse.from_workload(stats.my_workload) if stats.my_workload else None
            ),
        )
