"""
Outbound notification channels.
"""

from parcelwatch.notifications.webhook import WebhookNotifier

__all__ = ["WebhookNotifier"]
