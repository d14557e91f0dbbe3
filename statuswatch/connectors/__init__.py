"""
External collaborators: the upstream status API and the notification sink.
"""

from statuswatch.connectors.notifier import (
    Notification,
    Notifier,
    WebhookNotifier,
    build_webhook_payload,
)
from statuswatch.connectors.upstream_client import UpstreamClient, UpstreamResponse

__all__ = [
    "Notification",
    "Notifier",
    "UpstreamClient",
    "UpstreamResponse",
    "WebhookNotifier",
    "build_webhook_payload",
]
