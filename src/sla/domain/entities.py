"""
SLA Domain Entities
====================

Pure Python domain entities for SLA monitoring.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class BreachCandidate:
    """
    An open ticket past its SLA due time whose breach was never notified.

    Carries just what the escalation needs: the ticket and its owner.
    """
    ticket_id: UUID
    title: str
    sla_due_at: datetime
    owner_id: UUID
    owner_name: str
    owner_email: str

    def overdue_by(self, now: datetime) -> float:
        """Seconds past the due time."""
        return (now - self.sla_due_at).total_seconds()
