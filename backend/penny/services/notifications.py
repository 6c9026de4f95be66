"""Notification backends for dispatched interventions.

Provides a pluggable notifier. Default is logging only; a webhook backend
POSTs each notification to a configured URL. Backends raise on delivery
failure so the controller can mark the intervention undelivered.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass

import httpx

from penny.config import settings

logger = logging.getLogger("penny.controller")


@dataclass(frozen=True)
class Notification:
    user_id: uuid.UUID
    intervention_id: uuid.UUID
    intervention_type: str
    title: str
    message: str

    def payload(self) -> dict:
        data = asdict(self)
        data["user_id"] = str(self.user_id)
        data["intervention_id"] = str(self.intervention_id)
        return data


class NotificationBackend(ABC):
    """Abstract delivery channel for interventions."""

    @abstractmethod
    async def send(self, notification: Notification) -> None:
        """Deliver one notification. Raises on failure."""
        ...


class LoggingNotificationBackend(NotificationBackend):
    """Writes notifications to the log. Used when no webhook is configured."""

    async def send(self, notification: Notification) -> None:
        logger.info(
            "notification intervention=%s type=%s title=%r",
            notification.intervention_id,
            notification.intervention_type,
            notification.title,
        )


class WebhookNotificationBackend(NotificationBackend):
    """POSTs the notification as JSON to a push-delivery webhook."""

    def __init__(self, url: str, *, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self._url = url
        self._timeout = timeout
        self._transport = transport

    async def send(self, notification: Notification) -> None:
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            resp = await client.post(self._url, json=notification.payload())
        resp.raise_for_status()
        logger.info(
            "notification delivered intervention=%s status=%d",
            notification.intervention_id,
            resp.status_code,
        )


class InMemoryNotificationBackend(NotificationBackend):
    """Collects notifications for testing. Optionally fails on demand."""

    def __init__(self, *, fail: bool = False):
        self.sent: list[Notification] = []
        self.fail = fail

    async def send(self, notification: Notification) -> None:
        if self.fail:
            raise RuntimeError("notification delivery failed")
        self.sent.append(notification)


def build_notifier() -> NotificationBackend:
    if settings.notification_webhook_url:
        return WebhookNotificationBackend(settings.notification_webhook_url)
    return LoggingNotificationBackend()
