"""
SLA Domain Layer
================

Domain layer for SLA monitoring module.

Contains:
- Entities: BreachCandidate
- Value Objects: SLAThresholds, SLADefaultsConfig
- Domain Services: SLAPolicy

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from src.sla.domain.entities import BreachCandidate
from src.sla.domain.value_objects import SLAPolicy, SLAThresholds, SLADefaultsConfig

__all__ = [
    "BreachCandidate",
    "SLAPolicy",
    "SLAThresholds",
    "SLADefaultsConfig",
]
