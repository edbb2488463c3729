"""
Ticket Notifications
====================

Builds owner/agent notifications for ticket transitions and hands them to
the background dispatcher. Nothing here waits for delivery.
"""

import asyncio
from functools import partial
from typing import Any, Optional

from src.config import NotificationKind, settings
from src.infrastructure.notifications import INotifier, Notification
from src.infrastructure.tasks import BackgroundDispatcher
from src.tickets.application.services import ITicketNotifier


class TicketNotificationPublisher(ITicketNotifier):
    """Fire-and-forget ticket notifications over the notification channel."""

    def __init__(
        self,
        notifier: INotifier,
        dispatcher: BackgroundDispatcher,
        stagger_seconds: Optional[float] = None
    ):
        self._notifier = notifier
        self._dispatcher = dispatcher
        self._stagger = (
            settings.notification_stagger_seconds if stagger_seconds is None else stagger_seconds
        )

    def status_changed(self, owner: Any, ticket: Any) -> None:
        notification = Notification(
            kind=NotificationKind.STATUS_CHANGED,
            recipient_email=owner.email,
            recipient_name=owner.name,
            fields={
                "ticket_id": str(ticket.id),
                "ticket_title": ticket.title,
                "status": ticket.status,
            }
        )
        self._dispatcher.submit(
            partial(self._notifier.send, notification),
            name="status_change_notification",
            ticket_id=str(ticket.id)
        )

    def assigned(self, owner: Any, agent: Any, ticket: Any) -> None:
        fields = {
            "ticket_id": str(ticket.id),
            "ticket_title": ticket.title,
            "priority": ticket.priority,
            "owner_name": owner.name,
            "agent_name": agent.name,
        }
        to_owner = Notification(
            kind=NotificationKind.TICKET_ASSIGNED,
            recipient_email=owner.email,
            recipient_name=owner.name,
            fields=fields
        )
        to_agent = Notification(
            kind=NotificationKind.AGENT_ASSIGNED,
            recipient_email=agent.email,
            recipient_name=agent.name,
            fields=dict(fields)
        )
        self._dispatcher.submit(
            partial(self._send_in_sequence, to_owner, to_agent),
            name="assignment_notifications",
            ticket_id=str(ticket.id)
        )

    async def _send_in_sequence(self, first: Notification, second: Notification) -> None:
        # Mail provider rate-limits bursts to the same sender
        await self._notifier.send(first)
        if self._stagger > 0:
            await asyncio.sleep(self._stagger)
        await self._notifier.send(second)
