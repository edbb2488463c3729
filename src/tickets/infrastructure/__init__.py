"""
Ticket Infrastructure Layer
===========================

Contains:
- Models: SQLAlchemy ORM models
- Repositories: SQLAlchemy repository implementations
- ActivityLogWriter: background audit trail writes
- TicketNotificationPublisher: owner and agent notifications
"""

from src.tickets.infrastructure.models import (
    TicketModel,
    CommentModel,
    AttachmentModel,
    ActivityLogModel,
)
from src.tickets.infrastructure.repositories import (
    SQLAlchemyTicketRepository,
    SQLAlchemyCommentRepository,
    SQLAlchemyActivityLogRepository,
)
from src.tickets.infrastructure.activity import ActivityLogWriter
from src.tickets.infrastructure.notifications import TicketNotificationPublisher

__all__ = [
    # Models
    "TicketModel",
    "CommentModel",
    "AttachmentModel",
    "ActivityLogModel",
    # Repositories
    "SQLAlchemyTicketRepository",
    "SQLAlchemyCommentRepository",
    "SQLAlchemyActivityLogRepository",
    # Side effects
    "ActivityLogWriter",
    "TicketNotificationPublisher",
]
