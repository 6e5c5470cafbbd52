"""
services/booking/service.py
Booking lifecycle between a planner and a creative professional.

Who may move a booking where depends on which side of it they are on:

    planner       PENDING     -> CANCELLED
                  CONFIRMED   -> IN_PROGRESS | CANCELLED
                  IN_PROGRESS -> COMPLETED | CANCELLED
    professional  PENDING     -> CONFIRMED | REJECTED
                  CONFIRMED   -> IN_PROGRESS | CANCELLED
                  IN_PROGRESS -> COMPLETED

Every creation and transition notifies the other party.
"""

import logging
import uuid
from typing import Optional

from pydantic.alias_generators import to_camel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from services.notification.service import NotificationService
from shared.models.models import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    Event,
    User,
    UserRole,
)
from shared.schemas.schemas import BookingCreateRequest
from shared.utils.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from shared.utils.pagination import build_pagination, offset_for

logger = logging.getLogger(__name__)

PLANNER_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED},
    BookingStatus.IN_PROGRESS: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
}

PROFESSIONAL_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.REJECTED},
    BookingStatus.CONFIRMED: {BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED},
    BookingStatus.IN_PROGRESS: {BookingStatus.COMPLETED},
}


def allowed_transitions(booking: Booking, user: User) -> set[BookingStatus]:
    current = BookingStatus(booking.status)
    if user.id == booking.planner_id:
        return PLANNER_TRANSITIONS.get(current, set())
    if user.id == booking.professional_id:
        return PROFESSIONAL_TRANSITIONS.get(current, set())
    return set()


class BookingService:
    def __init__(self, db: AsyncSession, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    async def _get_or_404(self, booking_id: uuid.UUID) -> Booking:
        booking = await self.db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    # ── Create ────────────────────────────────────────────────
    async def create_booking(self, planner: User, data: BookingCreateRequest) -> Booking:
        event = await self.db.get(Event, data.event_id)
        if event is None:
            raise NotFoundError("Event not found")
        if event.creator_id != planner.id:
            raise AuthorizationError("You can only book professionals for your own events")

        professional = await self.db.get(User, data.professional_id)
        if (
            professional is None
            or not professional.is_active
            or professional.role != UserRole.CREATIVE_PROFESSIONAL
        ):
            raise NotFoundError("Professional not found")

        duplicate = await self.db.scalar(
            select(Booking.id).where(
                Booking.event_id == event.id,
                Booking.professional_id == professional.id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
        )
        if duplicate:
            raise ConflictError("This professional already has an active booking for this event")

        overlapping = await self.db.scalar(
            select(Booking.id).where(
                Booking.professional_id == professional.id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.start_date <= data.end_date,
                Booking.end_date >= data.start_date,
            )
        )
        if overlapping:
            raise ConflictError("The professional is already booked for this period")

        booking = Booking(
            id=uuid.uuid4(),
            event_id=event.id,
            planner_id=planner.id,
            professional_id=professional.id,
            start_date=data.start_date,
            end_date=data.end_date,
            rate=data.rate,
            currency=data.currency.upper(),
            status=BookingStatus.PENDING,
            notes=data.notes,
        )
        booking.event = event
        self.db.add(booking)
        await self.notifications.send_booking_notification(booking, professional)

        await self.db.commit()
        await self.db.refresh(booking)
        await self.notifications.publish_pending()
        logger.info(f"Booking {booking.id} created: event={event.id} professional={professional.id}")
        return booking

    # ── Transitions ───────────────────────────────────────────
    async def update_status(
        self, booking_id: uuid.UUID, user: User, new_status: BookingStatus, reason: Optional[str] = None
    ) -> Booking:
        booking = await self._get_or_404(booking_id)
        if user.id not in (booking.planner_id, booking.professional_id):
            raise AuthorizationError("You are not a participant in this booking")

        current, target = BookingStatus(booking.status), BookingStatus(new_status)
        if target not in allowed_transitions(booking, user):
            raise ValidationError(f"Cannot change booking from {current.value} to {target.value}")

        booking.status = target
        if target in (BookingStatus.CANCELLED, BookingStatus.REJECTED) and reason:
            booking.cancellation_reason = reason

        other = booking.professional if user.id == booking.planner_id else booking.planner
        await self.notifications.send_booking_notification(booking, other)

        await self.db.commit()
        await self.db.refresh(booking)
        await self.notifications.publish_pending()
        logger.info(f"Booking {booking.id}: {current.value} -> {target.value} by {user.id}")
        return booking

    # ── Queries ───────────────────────────────────────────────
    def _scoped(self, user: User):
        query = select(Booking)
        match user.role:
            case UserRole.EVENT_PLANNER:
                return query.where(Booking.planner_id == user.id)
            case UserRole.CREATIVE_PROFESSIONAL:
                return query.where(Booking.professional_id == user.id)
            case UserRole.ADMIN:
                return query

    async def list_bookings(
        self, user: User, status: Optional[BookingStatus] = None, page: int = 1, limit: int = 10
    ) -> tuple[list[Booking], dict]:
        query = self._scoped(user)
        if status:
            query = query.where(Booking.status == BookingStatus(status))
        total = await self.db.scalar(select(func.count()).select_from(query.subquery())) or 0
        result = await self.db.execute(
            query.order_by(Booking.start_date.desc(), Booking.created_at.desc())
            .offset(offset_for(page, limit))
            .limit(limit)
        )
        return list(result.scalars()), build_pagination(page, limit, total)

    async def get_booking(self, booking_id: uuid.UUID, user: User) -> Booking:
        booking = await self._get_or_404(booking_id)
        if user.role != UserRole.ADMIN and user.id not in (booking.planner_id, booking.professional_id):
            raise AuthorizationError("You are not a participant in this booking")
        return booking

    async def get_stats(self, user: User) -> dict:
        scoped = self._scoped(user).subquery()
        rows = await self.db.execute(select(scoped.c.status, func.count()).group_by(scoped.c.status))
        counts = {BookingStatus(s): n for s, n in rows.all()}
        value = await self.db.scalar(
            select(func.coalesce(func.sum(scoped.c.rate), 0)).where(scoped.c.status == BookingStatus.COMPLETED)
        )
        return {
            "total": sum(counts.values()),
            **{to_camel(s.value.lower()): counts.get(s, 0) for s in BookingStatus},
            "active": sum(counts.get(s, 0) for s in ACTIVE_BOOKING_STATUSES),
            "completedValue": float(value or 0),
        }

