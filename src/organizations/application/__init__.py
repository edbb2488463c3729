"""
Organization Application Layer
==============================

Contains:
- Services: OrganizationService, UserService
- DTOs: request bodies and response shapes
- Repository interfaces the infrastructure layer implements
"""

from src.organizations.application.services import (
    OrganizationService,
    UserService,
    IOrganizationRepository,
    IUserRepository,
)

__all__ = [
    # Services
    "OrganizationService",
    "UserService",
    # Repository Interfaces
    "IOrganizationRepository",
    "IUserRepository",
]
