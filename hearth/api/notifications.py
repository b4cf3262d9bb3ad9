# =============================================================================
# Notification Routes
# =============================================================================
#
# Endpoints:
#   GET   /notifications            - Own notifications (paginated)
#   POST  /notifications            - Create a notification for a user (admin)
#   PATCH /notifications/{id}/read  - Mark as read (recipient only)
#
# =============================================================================

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from hearth.api.deps import get_credentials, get_notifications
from hearth.api.users import Pagination
from hearth.auth import capabilities
from hearth.auth.context import AuthContext
from hearth.auth.credentials import CredentialStore
from hearth.auth.policies import authorize, require, require_auth
from hearth.core.exceptions import NotFoundError
from hearth.core.models import Notification
from hearth.services.notification import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationList(BaseModel):
    notifications: list[Notification]
    pagination: Pagination
    unread_count: int


class NotificationCreate(BaseModel):
    user_id: str
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    type: str = "general"
    scheduled_at: datetime | None = None


@router.get("", response_model=NotificationList)
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    ctx: AuthContext = Depends(require(capabilities.read_notifications())),
    notifications: NotificationService = Depends(get_notifications),
):
    items, total, unread = await notifications.list_for_user(
        ctx.user_id, unread_only=unread_only, page=page, limit=limit
    )
    return NotificationList(
        notifications=items,
        pagination=Pagination.of(page, limit, total),
        unread_count=unread,
    )


@router.post("", response_model=Notification, status_code=201)
async def create_notification(
    data: NotificationCreate,
    ctx: AuthContext = Depends(require(capabilities.create_notification())),
    notifications: NotificationService = Depends(get_notifications),
    credentials: CredentialStore = Depends(get_credentials),
):
    # Recipient must exist
    await credentials.get_or_raise(data.user_id)

    return await notifications.create(
        ctx.user_id,
        data.user_id,
        data.title,
        data.message,
        type=data.type,
        scheduled_at=data.scheduled_at,
    )


@router.patch("/{notification_id}/read", response_model=Notification)
async def mark_read(
    notification_id: str,
    ctx: AuthContext = Depends(require_auth()),
    notifications: NotificationService = Depends(get_notifications),
):
    # Someone else's notification answers exactly like a missing one
    notification = await notifications.find(notification_id)
    if notification is None or not authorize(ctx, capabilities.mark_notification_read(notification.user_id)):
        raise NotFoundError("notification", notification_id)

    return await notifications.mark_read(notification_id)
