"""
SLA Application DTOs
=====================

Data Transfer Objects for SLA API layer.
"""

from pydantic import BaseModel, Field


class SweepResponse(BaseModel):
    """Result of a manually triggered breach sweep."""
    processed: int = Field(..., description="Tickets marked as breach-notified by this sweep")
