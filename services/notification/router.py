"""
services/notification/router.py
In-app notification inbox. Email and push delivery happen out of band
(tasks/notification_tasks.py); live frames go over the WebSocket.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.notification.service import NotificationService
from shared.middleware.auth import get_current_user
from shared.models.models import Notification, User
from shared.schemas.schemas import NotificationResponse
from shared.utils.pagination import ok

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _dump(notification: Notification) -> dict:
    return NotificationResponse.model_validate(notification).model_dump(by_alias=True)


@router.get("")
async def get_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False, alias="unreadOnly"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Newest first."""
    items, pagination = await NotificationService(db).get_user_notifications(
        current_user.id, page, limit, unread_only
    )
    return ok([_dump(n) for n in items], pagination=pagination)


@router.get("/unread-count")
async def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok({"count": await NotificationService(db).get_unread_count(current_user.id)})


@router.patch("/read-all")
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await NotificationService(db).mark_all_as_read(current_user.id)
    return ok({"updated": updated}, "All notifications marked as read")


@router.patch("/{notification_id}/read")
async def mark_read(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notification = await NotificationService(db).mark_notification_as_read(notification_id, current_user.id)
    return ok(_dump(notification), "Notification marked as read")


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await NotificationService(db).delete_notification(notification_id, current_user.id)
    return ok(None, "Notification deleted")
