"""
Organization Domain Layer
=========================
"""

from src.organizations.domain.entities import OrganizationSummary

__all__ = ["OrganizationSummary"]
