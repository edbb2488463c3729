"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA monitoring:
- Repositories: breach detection and the notified-at gate
- External: defaults file watcher, sweep scheduler
"""

from src.sla.infrastructure.repositories import (
    SQLAlchemyBreachRepository,
    breach_repository_scope,
)
from src.sla.infrastructure.external import SLADefaultsManager, SLAScheduler

__all__ = [
    "SQLAlchemyBreachRepository",
    "breach_repository_scope",
    "SLADefaultsManager",
    "SLAScheduler",
]
