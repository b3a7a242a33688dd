"""
Notification Service.

Creates and queries in-app notifications for the (fixed) dashboard user.
Execution, sync and report services call ``notify`` after their main
writes; notification writes are best-effort and never fail the caller.
"""

import logging

from qadash.core.exceptions import PersistenceError, ValidationError
from qadash.models.notification import NOTIFICATION_TYPES

logger = logging.getLogger(__name__)


class NotificationService:
    """Gateway-bound notification operations.

    Args:
        gateway: PersistenceGateway instance.
        user_id: Recipient of every notification created here.
    """

    def __init__(self, gateway, user_id: str) -> None:
        self.gateway = gateway
        self.user_id = user_id

    # ── Create ────────────────────────────────────────────────────────────

    async def notify(self, title, message="", type="info", action_url=None):
        """Create a notification.

        Returns:
            The persisted notification dict, or None if the write failed.
        """
        if type not in NOTIFICATION_TYPES:
            type = "info"
        try:
            return await self.gateway.insert("notifications", {
                "user_id": self.user_id,
                "title": title,
                "message": message,
                "type": type,
                "action_url": action_url,
            })
        except PersistenceError as exc:
            logger.warning("Notification %r not stored: %s", title, exc)
            return None

    # ── Query ─────────────────────────────────────────────────────────────

    async def list_notifications(self, limit=10):
        """Newest notifications for the user."""
        if limit < 1:
            raise ValidationError("limit must be positive", details={"limit": limit})
        return await self.gateway.read(
            "notifications",
            {"user_id": self.user_id},
            order_by="-created_at",
            limit=limit,
        )

    async def mark_read(self, notification_id):
        """Mark one notification as read and return it.

        Raises:
            NotFoundError: No notification with that id.
        """
        await self.gateway.fetch_one("notifications", notification_id)
        await self.gateway.update("notifications", {"read": True}, {"id": notification_id})
        return await self.gateway.fetch_one("notifications", notification_id)
