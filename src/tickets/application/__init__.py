"""
Ticket Application Layer
========================

Contains:
- Services: TicketService (state machine), DashboardService
- DTOs: request bodies and response shapes
- Repository and side-effect interfaces the infrastructure layer implements
"""

from src.tickets.application.services import (
    TicketService,
    DashboardService,
    ITicketRepository,
    ICommentRepository,
    IActivityLogReader,
    IActivityLogWriter,
    IUserDirectory,
    IOrganizationLookup,
    ITicketNotifier,
)

__all__ = [
    # Services
    "TicketService",
    "DashboardService",
    # Interfaces
    "ITicketRepository",
    "ICommentRepository",
    "IActivityLogReader",
    "IActivityLogWriter",
    "IUserDirectory",
    "IOrganizationLookup",
    "ITicketNotifier",
]
