"""
Access Control Module
=====================

Bounded Context for identity and authorization.

Responsibilities:
- Represent the authenticated caller as an explicit Actor
- Resolve bearer credentials to an Actor at the HTTP edge
- Role capabilities and tenant scoping consumed by every other module
"""

__version__ = "1.0.0"
