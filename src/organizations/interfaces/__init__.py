"""
Organization Interfaces Layer
=============================

FastAPI routers for organizations and users.
"""

from src.organizations.interfaces.controllers import organizations_router, users_router

__all__ = ["organizations_router", "users_router"]
