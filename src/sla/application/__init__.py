"""
SLA Application Layer
======================

Application layer for SLA monitoring module.

Contains:
- Services: SLABreachSweeper
- DTOs: Data transfer objects for API serialization
- Repository interfaces the infrastructure layer implements

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from src.sla.application.dto import SweepResponse
from src.sla.application.services import (
    SLABreachSweeper,
    ISLABreachRepository,
    ISLADefaultsProvider,
)

__all__ = [
    # DTOs
    "SweepResponse",
    # Services
    "SLABreachSweeper",
    # Repository Interfaces
    "ISLABreachRepository",
    "ISLADefaultsProvider",
]
