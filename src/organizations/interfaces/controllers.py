"""
Organization Controllers (API Routes)
======================================

FastAPI routes for organizations, SLA settings and users.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.access.domain import Actor
from src.access.interfaces import get_current_actor
from src.infrastructure.database import get_session
from src.organizations.application import OrganizationService, UserService
from src.organizations.application.dto import (
    OrganizationResponse,
    SLASettingsResponse,
    UpdateRoleRequest,
    UpdateSLASettingsRequest,
    UserResponse,
)
from src.organizations.infrastructure import (
    SQLAlchemyOrganizationRepository,
    SQLAlchemyUserRepository,
)
from src.shared.api.schemas import success_response

organizations_router = APIRouter(prefix="/organizations", tags=["Organizations"])
users_router = APIRouter(prefix="/users", tags=["Users"])


# ========== Dependencies ==========

async def get_organization_service(
    request: Request,
    session: AsyncSession = Depends(get_session)
) -> OrganizationService:
    """Get organization service instance."""
    return OrganizationService(
        organizations=SQLAlchemyOrganizationRepository(session),
        users=SQLAlchemyUserRepository(session),
        sla_defaults=request.app.state.sla_defaults
    )


async def get_user_service(
    session: AsyncSession = Depends(get_session)
) -> UserService:
    """Get user service instance."""
    return UserService(
        users=SQLAlchemyUserRepository(session),
        organizations=SQLAlchemyOrganizationRepository(session)
    )


# ========== Organization Routes ==========

@organizations_router.get("", summary="All organizations with counts (super admin)")
async def list_organizations(
    actor: Actor = Depends(get_current_actor),
    service: OrganizationService = Depends(get_organization_service)
):
    summaries = await service.list_organizations(actor)
    return success_response([OrganizationResponse.from_summary(s) for s in summaries])


@organizations_router.get("/sla", summary="SLA thresholds of an organization")
async def get_sla_settings(
    organization_id: Optional[UUID] = Query(None, alias="organizationId"),
    actor: Actor = Depends(get_current_actor),
    service: OrganizationService = Depends(get_organization_service)
):
    thresholds = await service.get_sla_settings(actor, organization_id)
    return success_response(SLASettingsResponse(**thresholds.model_dump()))


@organizations_router.patch("/sla", summary="Update SLA thresholds (new tickets only)")
async def update_sla_settings(
    body: UpdateSLASettingsRequest,
    actor: Actor = Depends(get_current_actor),
    service: OrganizationService = Depends(get_organization_service)
):
    thresholds = await service.update_sla_settings(
        actor,
        sla_low_hours=body.sla_low_hours,
        sla_medium_hours=body.sla_medium_hours,
        sla_high_hours=body.sla_high_hours,
        organization_id=body.organization_id
    )
    return success_response(SLASettingsResponse(**thresholds.model_dump()), "SLA settings updated")


@organizations_router.delete("/{organization_id}", summary="Delete an empty organization")
async def delete_organization(
    organization_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: OrganizationService = Depends(get_organization_service)
):
    await service.delete_organization(actor, organization_id)
    return success_response(None, "Organization deleted")


# ========== User Routes ==========

@users_router.get("", summary="Users of the tenant")
async def list_users(
    organization_id: Optional[UUID] = Query(None, alias="organizationId"),
    actor: Actor = Depends(get_current_actor),
    service: UserService = Depends(get_user_service)
):
    users = await service.list_users(actor, organization_id)
    return success_response([UserResponse.model_validate(u) for u in users])


@users_router.get("/agents", summary="Agents of the tenant")
async def list_agents(
    organization_id: Optional[UUID] = Query(None, alias="organizationId"),
    actor: Actor = Depends(get_current_actor),
    service: UserService = Depends(get_user_service)
):
    agents = await service.list_agents(actor, organization_id)
    return success_response([UserResponse.model_validate(a) for a in agents])


@users_router.patch("/{user_id}/role", summary="Change a user's role")
async def update_user_role(
    user_id: UUID,
    body: UpdateRoleRequest,
    actor: Actor = Depends(get_current_actor),
    service: UserService = Depends(get_user_service)
):
    user = await service.update_user_role(actor, user_id, body.role)
    return success_response(UserResponse.model_validate(user), "Role updated")
