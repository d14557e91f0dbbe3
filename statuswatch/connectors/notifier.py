"""
Transition notifications.

Best-effort delivery of DOWN / RECOVERED messages to a webhook sink. The
body is a Discord-style embed. Delivery is a single POST with its own short
timeout: non-2xx responses and transport errors are logged, never retried,
and never raised to the ingestion cycle.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import structlog
from pydantic import BaseModel, Field

from statuswatch.models.enums import NotificationType

logger = structlog.get_logger()


# Embed colors
COLOR_DOWN = 15158332
COLOR_RECOVERED = 3066993


class Notification(BaseModel):
    """
    One transition notification.

    Attributes:
        kind: DOWN or RECOVERED
        service_name: Affected service
        region_name: Region of the affected service
        error: Error text (DOWN only)
        duration: Formatted downtime (RECOVERED only)
        occurred_at: Cycle time of the transition
    """

    kind: NotificationType
    service_name: str
    region_name: str
    error: Optional[str] = None
    duration: Optional[str] = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier(ABC):
    """Fire-and-forget notification sink."""

    @abstractmethod
    async def send(self, notification: Notification) -> bool:
        """
        Deliver a notification.

        Returns:
            True if the sink accepted it. Implementations must not raise.
        """
        pass


def build_webhook_payload(notification: Notification, footer: str) -> dict[str, Any]:
    """Build the embed JSON body for a notification."""
    is_down = notification.kind is NotificationType.DOWN

    if is_down:
        title = "🔴 Service Down"
        description = (
            f"**{notification.service_name}** in **{notification.region_name}** is down."
        )
    else:
        title = "🟢 Service Recovered"
        description = (
            f"**{notification.service_name}** in **{notification.region_name}** is back online."
        )

    fields = []
    if is_down:
        fields.append({"name": "Error", "value": f"`{notification.error or 'Unknown error'}`"})
    else:
        fields.append({"name": "Downtime Duration", "value": notification.duration or "Unknown"})
    fields.append({"name": "Time", "value": notification.occurred_at.isoformat()})

    return {
        "embeds": [
            {
                "title": title,
                "description": description,
                "color": COLOR_DOWN if is_down else COLOR_RECOVERED,
                "fields": fields,
                "footer": {"text": footer},
                "timestamp": notification.occurred_at.isoformat(),
            }
        ]
    }


class WebhookNotifier(Notifier):
    """
    Posts notifications to a webhook URL.

    Attributes:
        webhook_url: Destination URL; empty disables delivery
        timeout_seconds: Per-request timeout
        footer: Footer text on every embed
    """

    def __init__(
        self,
        webhook_url: str,
        timeout_seconds: float = 5.0,
        footer: str = "StatusWatch Monitor",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds
        self.footer = footer
        self._transport = transport

    async def send(self, notification: Notification) -> bool:
        if not self.webhook_url:
            logger.warning(
                "notification_skipped_no_webhook",
                kind=notification.kind.value,
                service_name=notification.service_name,
            )
            return False

        payload = build_webhook_payload(notification, self.footer)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as e:
            logger.error(
                "notification_delivery_error",
                kind=notification.kind.value,
                service_name=notification.service_name,
                error=str(e),
            )
            return False

        if not response.is_success:
            logger.error(
                "notification_rejected",
                kind=notification.kind.value,
                service_name=notification.service_name,
                status_code=response.status_code,
                body=response.text[:500],
            )
            return False

        logger.info(
            "notification_sent",
            kind=notification.kind.value,
            service_name=notification.service_name,
            region_name=notification.region_name,
        )
        return True
