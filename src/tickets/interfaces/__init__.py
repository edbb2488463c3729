"""
Ticket Interfaces Layer
=======================

FastAPI routers for tickets and dashboards.
"""

from src.tickets.interfaces.controllers import router, dashboard_router

__all__ = ["router", "dashboard_router"]
