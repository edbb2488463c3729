"""
Organization Application DTOs
=============================

Request bodies and response shapes for the organization and user APIs.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from src.config import Role
from src.organizations.domain import OrganizationSummary
from src.shared.api.schemas import CamelModel


# ========== Request DTOs ==========

class UpdateSLASettingsRequest(CamelModel):
    """Range checks run in the service, after the caller's permission."""

    sla_low_hours: int
    sla_medium_hours: int
    sla_high_hours: int
    organization_id: Optional[UUID] = Field(None, description="Required for SUPER_ADMIN")


class UpdateRoleRequest(CamelModel):
    role: Role


# ========== Response DTOs ==========

class SLASettingsResponse(CamelModel):
    sla_low_hours: int
    sla_medium_hours: int
    sla_high_hours: int


class UserResponse(CamelModel):
    id: UUID
    name: str
    email: str
    role: str
    organization_id: Optional[UUID] = None
    created_at: datetime


class OrganizationResponse(CamelModel):
    id: UUID
    name: str
    sla_low_hours: int
    sla_medium_hours: int
    sla_high_hours: int
    created_at: datetime
    user_count: int = 0
    ticket_count: int = 0

    @classmethod
    def from_summary(cls, summary: OrganizationSummary) -> "OrganizationResponse":
        org = summary.organization
        return cls(
            id=org.id,
            name=org.name,
            sla_low_hours=org.sla_low_hours,
            sla_medium_hours=org.sla_medium_hours,
            sla_high_hours=org.sla_high_hours,
            created_at=org.created_at,
            user_count=summary.user_count,
            ticket_count=summary.ticket_count,
        )
