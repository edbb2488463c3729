"""
Ticket Domain Layer
===================

Read shapes and query filters of the ticket module.
"""

from src.tickets.domain.entities import (
    AttachmentMeta,
    CommentView,
    DashboardStats,
    TicketDetail,
    TicketFilters,
    TicketPage,
    UserSummary,
    Workload,
)

__all__ = [
    "AttachmentMeta",
    "CommentView",
    "DashboardStats",
    "TicketDetail",
    "TicketFilters",
    "TicketPage",
    "UserSummary",
    "Workload",
]
