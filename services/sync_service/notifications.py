"""Notifications for failed syncs."""

import logging
import os
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class NotificationService:
    """Posts a message to a webhook when a sync aborts."""

    def __init__(self):
        """Initialize notification service."""
        self.notification_enabled = os.getenv("ENABLE_NOTIFICATIONS", "false").lower() == "true"
        self.notification_webhook = os.getenv("NOTIFICATION_WEBHOOK_URL")

    async def send_sync_failure_notification(
        self,
        reason: str,
        context: Optional[dict] = None
    ):
        """
        Send notification for an aborted sync.

        Delivery failures are logged and never affect the sync outcome.

        Args:
            reason: Why the sync aborted
            context: Optional additional context (stage, bucket...)
        """
        if not self.notification_enabled:
            logger.info("Notifications disabled, skipping sync failure notification")
            return

        notification_message = (
            f"Joplin notes sync failed\n"
            f"Reason: {reason}\n"
        )

        if context:
            notification_message += f"Context: {context}\n"

        logger.warning(f"SYNC FAILURE NOTIFICATION: {notification_message}")

        if not self.notification_webhook:
            return

        try:
            async with httpx.AsyncClient() as client:
                await client.post(
                    self.notification_webhook,
                    json={
                        "text": notification_message,
                        "reason": reason,
                        "context": context or {}
                    },
                    timeout=10.0
                )
            logger.info("Sync failure notification sent")
        except httpx.HTTPError as e:
            logger.error(f"Failed to send notification: {e}")
