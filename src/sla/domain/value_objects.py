"""
SLA Value Objects
==================

Immutable value objects for SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.config import Priority, SLA_MAX_HOURS, SLA_MIN_HOURS


class SLAPolicy:
    """
    Pure functions for SLA calculations.

    Stateless utility class, all SLA deadline logic in one place.
    """

    @staticmethod
    def sla_hours_for(organization: Any, priority: Any) -> int:
        """
        Resolution threshold in hours for a priority.

        HIGH and LOW map to their own thresholds; MEDIUM and anything
        unrecognised fall back to the medium threshold.

        Args:
            organization: Anything exposing sla_low_hours / sla_medium_hours / sla_high_hours
            priority: Priority enum member or its string value
        """
        value = getattr(priority, "value", priority)
        if value == Priority.HIGH.value:
            return organization.sla_high_hours
        if value == Priority.LOW.value:
            return organization.sla_low_hours
        return organization.sla_medium_hours

    @staticmethod
    def compute_due_at(created_at: datetime, hours: int) -> datetime:
        """
        Calculate the SLA due timestamp.

        Args:
            created_at: When the ticket was created
            hours: Threshold from sla_hours_for()

        Returns:
            created_at + hours
        """
        return created_at + timedelta(hours=hours)

    @staticmethod
    def due_at_for(organization: Any, priority: Any, created_at: datetime) -> datetime:
        """Due timestamp for a ticket created now under the organization's thresholds."""
        return SLAPolicy.compute_due_at(
            created_at, SLAPolicy.sla_hours_for(organization, priority)
        )


class SLAThresholds(BaseModel):
    """Per-priority resolution thresholds of an organization, in hours."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sla_low_hours: int = Field(
        ..., alias="slaLowHours", ge=SLA_MIN_HOURS, le=SLA_MAX_HOURS
    )
    sla_medium_hours: int = Field(
        ..., alias="slaMediumHours", ge=SLA_MIN_HOURS, le=SLA_MAX_HOURS
    )
    sla_high_hours: int = Field(
        ..., alias="slaHighHours", ge=SLA_MIN_HOURS, le=SLA_MAX_HOURS
    )


class SLADefaultsConfig(BaseModel):
    """
    SLA defaults loaded from YAML.

    default_thresholds seed every newly registered organization;
    at_risk_window_hours sizes the dashboard "at risk" bucket.
    """
    default_thresholds: SLAThresholds = Field(
        default_factory=lambda: SLAThresholds(
            sla_low_hours=72, sla_medium_hours=24, sla_high_hours=4
        ),
        description="Thresholds applied to new organizations"
    )
    at_risk_window_hours: int = Field(
        default=4,
        ge=1,
        le=SLA_MAX_HOURS,
        description="Open tickets due within this window count as at risk"
    )
