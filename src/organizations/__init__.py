"""
Organization Module
===================

Bounded Context for tenants and their users.

Responsibilities:
- Register an organization together with its first admin
- User creation, listing and role changes inside a tenant
- Per-organization SLA thresholds
- Removal of empty organizations
"""

__version__ = "1.0.0"
