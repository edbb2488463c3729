"""
Ticket Module
=============

Bounded Context for the ticket lifecycle.

Responsibilities:
- Open tickets with an SLA due time fixed at creation
- Status, priority, assignment, due date and soft-delete transitions
- Comments and attachment metadata
- Append-only activity log of every transition
- Owner and agent notifications
- Dashboard counters and agent workload
"""

__version__ = "1.0.0"
