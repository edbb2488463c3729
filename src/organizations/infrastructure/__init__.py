"""
Organization Infrastructure Layer
=================================

Contains:
- Models: SQLAlchemy ORM models
- Repositories: SQLAlchemy repository implementations
"""

from src.organizations.infrastructure.models import OrganizationModel, UserModel
from src.organizations.infrastructure.repositories import (
    SQLAlchemyOrganizationRepository,
    SQLAlchemyUserRepository,
)

__all__ = [
    # Models
    "OrganizationModel",
    "UserModel",
    # Repositories
    "SQLAlchemyOrganizationRepository",
    "SQLAlchemyUserRepository",
]
