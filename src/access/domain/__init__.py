"""
Access Domain Layer
===================

Contains:
- Actor: the authenticated caller
- AccessGuard: role capabilities and tenant isolation rules
"""

from src.access.domain.actor import Actor
from src.access.domain.guard import AccessGuard, Capability, ROLE_CAPABILITIES

__all__ = [
    "Actor",
    "AccessGuard",
    "Capability",
    "ROLE_CAPABILITIES",
]
