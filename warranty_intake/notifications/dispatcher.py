"""
Notification dispatch for finished intake runs.

Rendering and delivery belong to an external system; intake only hands it an
event. Delivery is best-effort: a failed notification is logged and never
undoes the call record or claim that were already stored.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx

from ..errors import NotificationError
from ..intake.schema import CallRecord, Claim, Homeowner, NotificationScenario
from ..utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class NotificationEvent:
    """What happened to one call."""
    scenario: NotificationScenario
    call_record: CallRecord
    homeowner: Optional[Homeowner] = None
    claim: Optional[Claim] = None

    def to_dict(self) -> dict:
        """Convert to a JSON-safe dictionary."""
        return {
            "scenario": self.scenario.value,
            "call_record": self.call_record.model_dump(mode="json"),
            "homeowner": self.homeowner.model_dump(mode="json") if self.homeowner else None,
            "claim": self.claim.model_dump(mode="json") if self.claim else None,
        }


class NotificationDispatcher(ABC):
    """Base class for notification delivery."""

    @abstractmethod
    async def notify(self, event: NotificationEvent) -> None:
        """
        Deliver one notification.

        Raises:
            NotificationError: if delivery failed
        """
        pass


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Writes notifications to the log. Used when no webhook is configured."""

    async def notify(self, event: NotificationEvent) -> None:
        record = event.call_record
        claim = f" claim #{event.claim.claim_number}" if event.claim else ""
        homeowner = f" homeowner {event.homeowner.id}" if event.homeowner else ""
        logger.info(
            f"📣 {event.scenario.value}: call {record.external_call_id}{homeowner}{claim}"
        )


class WebhookNotificationDispatcher(NotificationDispatcher):
    """POSTs notifications as JSON to an external endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def notify(self, event: NotificationEvent) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=event.to_dict())
        except httpx.HTTPError as e:
            raise NotificationError(f"Notification request failed: {e}", original_error=e) from e

        if response.status_code >= 400:
            raise NotificationError(f"Notification endpoint returned {response.status_code}")


async def dispatch_safely(dispatcher: NotificationDispatcher, event: NotificationEvent) -> bool:
    """
    Deliver a notification without ever raising.

    Returns:
        True if the dispatcher reported success
    """
    try:
        await dispatcher.notify(event)
        return True
    except Exception as e:
        error = e if isinstance(e, NotificationError) else NotificationError(str(e), original_error=e)
        logger.error(
            f"❌ Notification failed for call {event.call_record.external_call_id} "
            f"({event.scenario.value}): {error}"
        )
        return False


def create_dispatcher(settings: Optional[Settings] = None) -> NotificationDispatcher:
    """Factory function to create the configured dispatcher."""
    settings = settings or get_settings()
    if settings.notification_webhook_url:
        return WebhookNotificationDispatcher(settings.notification_webhook_url)
    return LoggingNotificationDispatcher()
