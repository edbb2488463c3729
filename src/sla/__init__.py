"""
SLA Module
==========

Bounded Context for Service Level Agreement deadlines and escalation.

Responsibilities:
- Compute a ticket's SLA due time from its priority and organization
- Default thresholds for new organizations (YAML, hot-reloaded)
- Periodic breach sweep: escalate each breached ticket exactly once
- Manual sweep trigger
"""

__version__ = "1.0.0"
