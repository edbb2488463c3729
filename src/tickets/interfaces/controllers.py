"""
Ticket Controllers (API Routes)
================================

FastAPI routes for tickets and dashboards.

Controllers are thin - they resolve the Actor, build the service and
delegate. Authorization lives in the services.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.access.domain import Actor
from src.access.interfaces import get_current_actor
from src.infrastructure.database import get_session
from src.organizations.infrastructure import (
    SQLAlchemyOrganizationRepository,
    SQLAlchemyUserRepository,
)
from src.shared.api.schemas import success_response
from src.tickets.application import DashboardService, TicketService
from src.tickets.application.dto import (
    ActivityResponse,
    AddCommentRequest,
    AssignTicketRequest,
    CommentResponse,
    CreateTicketRequest,
    DashboardStatsResponse,
    SetDueDateRequest,
    TicketDetailResponse,
    TicketPageResponse,
    TicketResponse,
    UpdatePriorityRequest,
    UpdateStatusRequest,
    WorkloadResponse,
)
from src.tickets.domain import AttachmentMeta, TicketFilters
from src.tickets.infrastructure import (
    SQLAlchemyActivityLogRepository,
    SQLAlchemyCommentRepository,
    SQLAlchemyTicketRepository,
)

router = APIRouter(prefix="/tickets", tags=["Tickets"])
dashboard_router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


# ========== Dependencies ==========

async def get_ticket_service(
    request: Request,
    session: AsyncSession = Depends(get_session)
) -> TicketService:
    """Get ticket service instance."""
    state = request.app.state
    return TicketService(
        tickets=SQLAlchemyTicketRepository(session),
        comments=SQLAlchemyCommentRepository(session),
        activity_reader=SQLAlchemyActivityLogRepository(session),
        users=SQLAlchemyUserRepository(session),
        organizations=SQLAlchemyOrganizationRepository(session),
        activity_log=state.activity_log,
        notifier=state.ticket_notifier,
        clock=state.clock
    )


async def get_dashboard_service(
    request: Request,
    session: AsyncSession = Depends(get_session)
) -> DashboardService:
    """Get dashboard service instance."""
    state = request.app.state
    return DashboardService(
        tickets=SQLAlchemyTicketRepository(session),
        users=SQLAlchemyUserRepository(session),
        sla_defaults=state.sla_defaults,
        clock=state.clock
    )


# ========== Ticket Routes ==========

@router.post("", status_code=status.HTTP_201_CREATED, summary="Open a ticket")
async def create_ticket(
    body: CreateTicketRequest,
    actor: Actor = Depends(get_current_actor),
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.create_ticket(
        actor,
        title=body.title,
        description=body.description,
        priority=body.priority,
        attachments=[
            AttachmentMeta(filename=a.filename, path=a.path, mimetype=a.mimetype, size=a.size)
            for a in body.attachments
        ]
    )
    return success_response(TicketResponse.model_validate(ticket), "Ticket created successfully")


@router.get("", summary="List tickets of the tenant")
async def list_tickets(
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = Query(None),
    assigned_to_id: Optional[UUID] = Query(None, alias="assignedToId"),
    search: Optional[str] = Query(None),
    organization_id: Optional[UUID] = Query(None, alias="organizationId"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    service: TicketService = Depends(get_ticket_service)
):
    filters = TicketFilters(
        organization_id=organization_id,
        status=status_filter,
        priority=priority,
        assigned_to_id=assigned_to_id,
        search=search or None
    )
    result = await service.get_all_tickets(actor, filters, page=page, limit=limit)
    return success_response(TicketPageResponse.from_page(result))


@router.get("/my", summary="Tickets opened by the caller")
async def my_tickets(
    actor: Actor = Depends(get_current_actor),
    service: TicketService = Depends(get_ticket_service)
):
    tickets = await service.get_my_tickets(actor)
    return success_response([TicketResponse.model_validate(t) for t in tickets])


@router.get("/{ticket_id}", summary="Ticket with owner, assignee and attachments")
async def get_ticket(
    ticket_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: TicketService = Depends(get_ticket_service)
):
    detail = await service.get_ticket(actor, ticket_id)
    return success_response(TicketDetailResponse.from_detail(detail))


@router.patch("/{ticket_id}/status", summary="Change status")
async def update_status(
    ticket_id: UUID,
    body: UpdateStatusRequest,
    actor: Actor = Depends(get_current_actor),
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.change_status(actor, ticket_id, body.status)
    return success_response(TicketResponse.model_validate(ticket), "Status updated")


@router.patch("/{ticket_id}/priority", summary="Change priority")
async def update_priority(
    ticket_id: UUID,
    body: UpdatePriorityRequest,
    actor: Actor = Depends(get_current_actor),
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.change_priority(actor, ticket_id, body.priority)
    return success_response(TicketResponse.model_validate(ticket), "Priority updated")


@router.patch("/{ticket_id}/assign", summary="Assign to an agent or unassign")
async def assign_ticket(
    ticket_id: UUID,
    body: AssignTicketRequest,
    actor: Actor = Depends(get_current_actor),
    service: TicketService = Depends(get_ticket_service)
):
    detail = await service.assign(actor, ticket_id, body.assigned_to_id)
    message = "Ticket assigned" if body.assigned_to_id else "Ticket unassigned"
    return success_response(TicketDetailResponse.from_detail(detail), message)


@router.patch("/{ticket_id}/due-date", summary="Set or clear the due date")
async def set_due_date(
    ticket_id: UUID,
    body: SetDueDateRequest,
    actor: Actor = Depends(get_current_actor),
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.set_due_date(actor, ticket_id, body.due_date)
    return success_response(TicketResponse.model_validate(ticket), "Due date updated")


@router.delete("/{ticket_id}", summary="Soft-delete a ticket")
async def delete_ticket(
    ticket_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: TicketService = Depends(get_ticket_service)
):
    await service.soft_delete(actor, ticket_id)
    return success_response(None, "Ticket deleted")


@router.post("/{ticket_id}/comments", status_code=status.HTTP_201_CREATED, summary="Add a comment")
async def add_comment(
    ticket_id: UUID,
    body: AddCommentRequest,
    actor: Actor = Depends(get_current_actor),
    service: TicketService = Depends(get_ticket_service)
):
    view = await service.add_comment(actor, ticket_id, body.message)
    return success_response(CommentResponse.from_view(view), "Comment added")


@router.get("/{ticket_id}/comments", summary="Comments, oldest first")
async def list_comments(
    ticket_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: TicketService = Depends(get_ticket_service)
):
    views = await service.list_comments(actor, ticket_id)
    return success_response([CommentResponse.from_view(v) for v in views])


@router.get("/{ticket_id}/activity", summary="Audit trail, oldest first")
async def list_activity(
    ticket_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: TicketService = Depends(get_ticket_service)
):
    entries = await service.list_activity(actor, ticket_id)
    return success_response([ActivityResponse.model_validate(e) for e in entries])


# ========== Dashboard Routes ==========

@dashboard_router.get("/stats", summary="Ticket counters for the tenant")
async def dashboard_stats(
    organization_id: Optional[UUID] = Query(None, alias="organizationId"),
    actor: Actor = Depends(get_current_actor),
    service: DashboardService = Depends(get_dashboard_service)
):
    stats = await service.get_stats(actor, organization_id)
    return success_response(DashboardStatsResponse.from_stats(stats))


@dashboard_router.get("/workload", summary="Assigned ticket counts per agent")
async def dashboard_workload(
    organization_id: Optional[UUID] = Query(None, alias="organizationId"),
    actor: Actor = Depends(get_current_actor),
    service: DashboardService = Depends(get_dashboard_service)
):
    workloads = await service.get_workload(actor, organization_id)
    return success_response([WorkloadResponse.from_workload(w) for w in workloads])
