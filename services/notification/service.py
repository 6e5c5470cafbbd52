"""
services/notification/service.py
Notification dispatcher.

A notification is written in the same transaction as the domain operation
that caused it; the row carries its own email/push delivery state and is
delivered later by the relay task (tasks/notification_tasks.py). Nothing in
here ever raises into the primary operation: failures are logged and the
caller carries on.
"""

import logging
import uuid
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from services.realtime.manager import ConnectionManager, push_safely
from shared.models.models import (
    Booking,
    BookingStatus,
    DeliveryStatus,
    Event,
    EventStatus,
    Notification,
    NotificationPriority,
    NotificationType,
    User,
    UserRole,
)
from shared.schemas.schemas import NotificationResponse
from shared.utils.dates import utcnow
from shared.utils.exceptions import NotFoundError
from shared.utils.pagination import build_pagination, offset_for

logger = logging.getLogger(__name__)


def truncate_preview(content: str, length: int = settings.MESSAGE_PREVIEW_LENGTH) -> str:
    """Message previews longer than `length` are cut and suffixed with '...'."""
    if len(content) > length:
        return content[:length] + "..."
    return content


# ── Booking templates, keyed by (status, recipient role) ──────

def booking_template(status: BookingStatus, recipient_role: UserRole, event_title: str) -> tuple[str, str]:
    match (status, recipient_role):
        case (BookingStatus.PENDING, UserRole.CREATIVE_PROFESSIONAL):
            return "New Booking Request", f'You have a new booking request for "{event_title}"'
        case (BookingStatus.CONFIRMED, UserRole.EVENT_PLANNER):
            return "Booking Accepted", f'Your booking for "{event_title}" has been accepted'
        case (BookingStatus.REJECTED, UserRole.EVENT_PLANNER):
            return "Booking Declined", f'Your booking request for "{event_title}" was declined'
        case (BookingStatus.CANCELLED, _):
            return "Booking Cancelled", f'The booking for "{event_title}" has been cancelled'
        case (BookingStatus.COMPLETED, _):
            return "Booking Completed", f'The booking for "{event_title}" is complete. Leave a review!'
        case _:
            return "Booking Update", f"Update for your booking: {event_title}"


class NotificationService:
    def __init__(self, db: AsyncSession, realtime: Optional[ConnectionManager] = None):
        self.db = db
        self.realtime = realtime
        self._pending_frames: List[tuple[uuid.UUID, dict]] = []

    # ── Core ──────────────────────────────────────────────────
    async def send_notification(
        self,
        user_id: uuid.UUID,
        type: NotificationType,
        title: str,
        message: str,
        metadata: Optional[dict] = None,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        send_email: bool = False,
    ) -> Optional[Notification]:
        """
        Record a notification for user_id in the current transaction.
        Email/push channels are marked PENDING for the relay; the live frame
        is queued and pushed by publish_pending() once the caller commits.
        Returns None (and logs) if anything goes wrong.
        """
        try:
            user = await self.db.get(User, user_id)
            if user is None or not user.is_active:
                logger.info(f"Skipping notification '{title}' for missing/inactive user {user_id}")
                return None

            notification = Notification(
                id=uuid.uuid4(),
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                extra=metadata,
                priority=priority,
                is_read=False,
                email_status=DeliveryStatus.PENDING if send_email else DeliveryStatus.SKIPPED,
                push_status=DeliveryStatus.PENDING if user.fcm_token else DeliveryStatus.SKIPPED,
                delivery_attempts=0,
                created_at=utcnow(),
            )
            self.db.add(notification)
            self._pending_frames.append(
                (user_id, NotificationResponse.model_validate(notification).model_dump(mode="json", by_alias=True))
            )
            return notification
        except Exception:
            logger.exception(f"Failed to record notification '{title}' for user {user_id}")
            return None

    async def publish_pending(self) -> None:
        """Push queued live frames. Call after the surrounding transaction commits."""
        frames, self._pending_frames = self._pending_frames, []
        for user_id, payload in frames:
            await push_safely(self.realtime, user_id, "notification", payload)

    # ── Specialised helpers ───────────────────────────────────
    async def send_booking_notification(self, booking: Booking, recipient: User) -> Optional[Notification]:
        event_title = booking.event.title if booking.event else "your event"
        title, message = booking_template(booking.status, recipient.role, event_title)
        type_ = (
            NotificationType.BOOKING_REQUEST
            if booking.status == BookingStatus.PENDING
            else NotificationType.BOOKING_UPDATE
        )
        return await self.send_notification(
            user_id=recipient.id,
            type=type_,
            title=title,
            message=message,
            metadata={"bookingId": str(booking.id), "eventId": str(booking.event_id), "status": BookingStatus(booking.status).value},
            priority=NotificationPriority.HIGH,
            send_email=True,
        )

    async def send_event_notification(self, user_id: uuid.UUID, event: Event, reminder: bool = False):
        if reminder:
            title, type_ = "Event Reminder", NotificationType.EVENT_REMINDER
            message = f'Your event "{event.title}" is coming up soon'
        else:
            title, type_ = "Event Update", NotificationType.EVENT_UPDATE
            message = f'The event "{event.title}" has been updated'
        return await self.send_notification(
            user_id=user_id,
            type=type_,
            title=title,
            message=message,
            metadata={"eventId": str(event.id)},
        )

    async def send_application_notification(
        self, user_id: uuid.UUID, title: str, message: str, metadata: dict
    ) -> Optional[Notification]:
        return await self.send_notification(
            user_id=user_id,
            type=NotificationType.APPLICATION_UPDATE,
            title=title,
            message=message,
            metadata=metadata,
        )

    async def send_message_notification(
        self,
        recipient_id: uuid.UUID,
        sender_name: str,
        content: str,
        conversation_id: uuid.UUID,
        message_id: uuid.UUID,
    ) -> Optional[Notification]:
        return await self.send_notification(
            user_id=recipient_id,
            type=NotificationType.MESSAGE_RECEIVED,
            title=f"New message from {sender_name}",
            message=truncate_preview(content),
            metadata={"conversationId": str(conversation_id), "messageId": str(message_id)},
        )

    async def send_review_notification(
        self, reviewee_id: uuid.UUID, reviewer_name: str, rating: int, review_id: uuid.UUID
    ) -> Optional[Notification]:
        return await self.send_notification(
            user_id=reviewee_id,
            type=NotificationType.REVIEW_RECEIVED,
            title="New Review Received",
            message=f"{reviewer_name} left you a {rating}-star review",
            metadata={"reviewId": str(review_id), "rating": rating},
        )

    # ── Reminder scan ─────────────────────────────────────────
    async def send_reminder_notifications(self) -> dict:
        """
        PUBLISHED events starting within 24h notify their creator;
        CONFIRMED bookings starting within 48h notify both parties.
        Repeated runs inside the window send repeated reminders.
        """
        now = utcnow()
        events = (await self.db.execute(
            select(Event).where(
                Event.status == EventStatus.PUBLISHED,
                Event.start_date > now,
                Event.start_date <= now + timedelta(hours=24),
            )
        )).scalars().all()
        for event in events:
            await self.send_notification(
                user_id=event.creator_id,
                type=NotificationType.EVENT_REMINDER,
                title="Event Reminder",
                message=f'Your event "{event.title}" is happening tomorrow!',
                metadata={"eventId": str(event.id)},
                priority=NotificationPriority.HIGH,
                send_email=True,
            )

        bookings = (await self.db.execute(
            select(Booking).where(
                Booking.status == BookingStatus.CONFIRMED,
                Booking.start_date > now,
                Booking.start_date <= now + timedelta(hours=48),
            )
        )).scalars().all()
        for booking in bookings:
            metadata = {"bookingId": str(booking.id), "eventId": str(booking.event_id)}
            await self.send_notification(
                user_id=booking.professional_id,
                type=NotificationType.EVENT_REMINDER,
                title="Upcoming Booking",
                message=f'You have a booking for "{booking.event.title}" in 2 days',
                metadata=metadata,
                priority=NotificationPriority.HIGH,
                send_email=True,
            )
            await self.send_notification(
                user_id=booking.planner_id,
                type=NotificationType.EVENT_REMINDER,
                title="Upcoming Service",
                message=f"{booking.professional.name} will provide services in 2 days",
                metadata=metadata,
                priority=NotificationPriority.HIGH,
                send_email=True,
            )

        await self.db.commit()
        await self.publish_pending()
        logger.info(f"Reminders sent: {len(events)} events, {len(bookings)} bookings")
        return {"events": len(events), "bookings": len(bookings)}

    # ── Read side ─────────────────────────────────────────────
    async def get_user_notifications(
        self, user_id: uuid.UUID, page: int = 1, limit: int = 20, unread_only: bool = False
    ) -> tuple[list[Notification], dict]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        result = await self.db.execute(
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset_for(page, limit))
            .limit(limit)
        )
        return list(result.scalars()), build_pagination(page, limit, total or 0)

    async def get_unread_count(self, user_id: uuid.UUID) -> int:
        count = await self.db.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return count or 0

    async def _get_owned_or_404(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
        notification = await self.db.get(Notification, notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("Notification not found")
        return notification

    async def mark_notification_as_read(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
        notification = await self._get_owned_or_404(notification_id, user_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            await self.db.commit()
        return notification

    async def mark_all_as_read(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(and_(Notification.user_id == user_id, Notification.is_read.is_(False)))
            .values(is_read=True, read_at=utcnow())
        )
        await self.db.commit()
        return result.rowcount or 0

    async def delete_notification(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> None:
        notification = await self._get_owned_or_404(notification_id, user_id)
        await self.db.delete(notification)
        await self.db.commit()
