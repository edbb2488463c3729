"""
Notification Channel
====================

Out-of-band delivery of ticket notifications (status changes, assignments,
SLA breach escalations).

The channel is a JSON webhook in front of the mail provider. The client has:
- Circuit breaker to prevent cascade failures
- Exponential backoff retry
- Timeout handling

Delivery is best-effort: send() reports success as a bool and never raises.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from src.config import NotificationKind, settings
from src.core import NotificationException
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


SUBJECTS = {
    NotificationKind.STATUS_CHANGED: "Ticket status updated: {ticket_title}",
    NotificationKind.TICKET_ASSIGNED: "Your ticket has been assigned: {ticket_title}",
    NotificationKind.AGENT_ASSIGNED: "New ticket assigned to you: {ticket_title}",
    NotificationKind.SLA_BREACHED: "SLA breached: {ticket_title}",
}


@dataclass
class Notification:
    """A single message for one recipient."""
    kind: NotificationKind
    recipient_email: str
    recipient_name: str
    fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def subject(self) -> str:
        template = SUBJECTS.get(self.kind, "{ticket_title}")
        return template.format(ticket_title=self.fields.get("ticket_title", ""))


class INotifier(ABC):
    """Interface for the notification channel."""

    @abstractmethod
    async def send(self, notification: Notification) -> bool:
        """Deliver a notification. Returns True when accepted by the channel."""

    async def close(self) -> None:
        """Release resources held by the channel."""


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        """Get current circuit state."""
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            elapsed = time.monotonic() - self._last_failure_time
            if elapsed >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        """Check if request should be allowed."""
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        """Record successful request."""
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        """Record failed request."""
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class WebhookNotifier(INotifier):
    """Posts notifications as JSON to the configured webhook."""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        max_retries: int = 3,
        circuit_breaker: Optional[CircuitBreaker] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._webhook_url = webhook_url if webhook_url is not None else settings.notification_webhook_url
        self._timeout = timeout_seconds or settings.notification_timeout_seconds
        self._max_retries = max_retries
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=60
        )
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    def _build_payload(self, notification: Notification) -> Dict[str, Any]:
        return {
            "kind": notification.kind.value,
            "to": {
                "email": notification.recipient_email,
                "name": notification.recipient_name,
            },
            "subject": notification.subject,
            "fields": notification.fields,
            "sent_at": datetime.now(timezone.utc).isoformat(),
        }

    async def send(self, notification: Notification) -> bool:
        if not self._webhook_url:
            logger.debug(
                "Notification webhook URL not configured, skipping notification",
                extra={"kind": notification.kind.value}
            )
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping notification",
                extra={"kind": notification.kind.value, "ticket_id": notification.fields.get("ticket_id")}
            )
            return False

        payload = self._build_payload(notification)

        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=payload)

                if 200 <= response.status_code < 300:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Notification sent",
                        extra={
                            "kind": notification.kind.value,
                            "ticket_id": notification.fields.get("ticket_id")
                        }
                    )
                    return True

                raise NotificationException(
                    "webhook returned non-2xx", {"status_code": response.status_code}
                )

            except (httpx.HTTPError, NotificationException) as e:
                logger.error(
                    "Notification delivery failed",
                    extra={
                        "error": str(e),
                        "attempt": attempt + 1,
                        "ticket_id": notification.fields.get("ticket_id")
                    }
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
