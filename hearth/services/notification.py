"""
Notification Service.

In-app notifications addressed to a single user. Created by admins through
the API, or by the system when something happens to a user's payments.
Delivery beyond the in-app inbox (email, SMS, push) is not handled here.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from hearth.auth.audit import AuditLog
from hearth.core.exceptions import NotFoundError
from hearth.core.models import AuditAction, Notification
from hearth.core.utils import utc_now
from hearth.storage.base import Collections, MetadataStorage

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Stores notifications and tracks their read state.

    Who may create or read a notification is decided by the caller through
    the policy layer; this service only persists.
    """

    def __init__(self, metadata: MetadataStorage, audit: AuditLog):
        self.metadata = metadata
        self.audit = audit

    async def create(
        self,
        actor_id: str,
        user_id: str,
        title: str,
        message: str,
        type: str = "general",
        scheduled_at: datetime | None = None,
    ) -> Notification:
        """Create a notification on behalf of ``actor_id`` and audit it."""
        notification = await self.notify(user_id, title, message, type, scheduled_at)

        await self.audit.record(
            actor_id,
            AuditAction.NOTIFICATION_CREATED,
            resource_type="notification",
            detail={
                "notificationId": notification.id,
                "targetUserId": user_id,
                "type": type,
            },
        )
        return notification

    async def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        type: str = "general",
        scheduled_at: datetime | None = None,
    ) -> Notification:
        """System notification. Not audited."""
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            scheduled_at=scheduled_at,
        )
        await self.metadata.insert(
            Collections.NOTIFICATIONS,
            notification.id,
            notification.model_dump(mode="json"),
        )
        logger.debug(f"Notification {notification.id} ({type}) for {user_id}")
        return notification

    async def find(self, notification_id: str) -> Notification | None:
        data = await self.metadata.get(Collections.NOTIFICATIONS, notification_id)
        return Notification.model_validate(data) if data else None

    async def get(self, notification_id: str) -> Notification:
        notification = await self.find(notification_id)
        if notification is None:
            raise NotFoundError("notification", notification_id)
        return notification

    async def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Notification], int, int]:
        """
        A user's notifications, newest first.

        Returns (notifications on this page, total matching, unread count).
        """
        filters: dict[str, Any] = {"user_id": user_id}
        if unread_only:
            filters["is_read"] = False

        docs = await self.metadata.query(
            Collections.NOTIFICATIONS,
            filters,
            limit=limit,
            offset=(page - 1) * limit,
            order_by="-created_at",
        )
        total = await self.metadata.count(Collections.NOTIFICATIONS, filters)
        unread = await self.metadata.count(
            Collections.NOTIFICATIONS, {"user_id": user_id, "is_read": False}
        )
        return [Notification.model_validate(doc) for doc in docs], total, unread

    async def mark_read(self, notification_id: str) -> Notification:
        """
        Mark a notification as read. Marking twice keeps the first read time.

        Raises:
            NotFoundError: No such notification
        """
        notification = await self.get(notification_id)
        if notification.is_read:
            return notification

        notification = notification.model_copy(update={"is_read": True, "read_at": utc_now()})
        await self.metadata.update(
            Collections.NOTIFICATIONS,
            notification_id,
            {"is_read": True, "read_at": notification.read_at.isoformat()},
        )
        return notification
