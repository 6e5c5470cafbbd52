"""
services/event/service.py
Event lifecycle for planners: create, edit, publish, delete, and the
visibility rules applied when anyone else reads an event.
"""

import logging
import uuid
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from services.notification.service import NotificationService
from shared.models.models import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    Event,
    EventApplication,
    EventStatus,
    EventType,
    User,
    UserRole,
)
from shared.schemas.schemas import EventCreateRequest, EventResponse, EventUpdateRequest
from shared.utils.dates import ensure_utc
from shared.utils.exceptions import AuthorizationError, NotFoundError, ValidationError
from shared.utils.pagination import build_pagination, offset_for

logger = logging.getLogger(__name__)


def event_payload(event: Event, application_count: int = 0, booking_count: int = 0) -> dict:
    response = EventResponse.model_validate(event)
    response.application_count = application_count
    response.booking_count = booking_count
    return response.model_dump(by_alias=True)


class EventService:
    def __init__(self, db: AsyncSession, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    # ── Lookups ───────────────────────────────────────────────
    async def get_event_or_404(self, event_id: uuid.UUID) -> Event:
        event = await self.db.get(Event, event_id)
        if event is None:
            raise NotFoundError("Event not found")
        return event

    async def get_owned_event(self, event_id: uuid.UUID, user: User) -> Event:
        event = await self.get_event_or_404(event_id)
        if event.creator_id != user.id:
            raise AuthorizationError("You can only manage your own events")
        return event

    @staticmethod
    def is_visible_to(event: Event, viewer: Optional[User]) -> bool:
        if event.is_public and event.status != EventStatus.DRAFT:
            return True
        if viewer is None:
            return False
        return viewer.role == UserRole.ADMIN or viewer.id == event.creator_id

    async def counts(self, event_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, tuple[int, int]]:
        """event id -> (application count, booking count)"""
        ids = list(event_ids)
        if not ids:
            return {}
        apps = dict((await self.db.execute(
            select(EventApplication.event_id, func.count(EventApplication.id))
            .where(EventApplication.event_id.in_(ids))
            .group_by(EventApplication.event_id)
        )).all())
        bookings = dict((await self.db.execute(
            select(Booking.event_id, func.count(Booking.id))
            .where(Booking.event_id.in_(ids))
            .group_by(Booking.event_id)
        )).all())
        return {i: (apps.get(i, 0), bookings.get(i, 0)) for i in ids}

    async def with_counts(self, events: list[Event]) -> list[dict]:
        counts = await self.counts(e.id for e in events)
        return [event_payload(e, *counts[e.id]) for e in events]

    # ── Commands ──────────────────────────────────────────────
    async def create_event(self, user: User, data: EventCreateRequest) -> Event:
        if user.planner_profile is None:
            raise ValidationError("Complete your planner profile before creating events")

        event = Event(
            id=uuid.uuid4(),
            creator_id=user.id,
            planner_profile_id=user.planner_profile.id,
            title=data.title,
            description=data.description,
            event_type=EventType(data.event_type),
            start_date=data.start_date,
            end_date=data.end_date,
            location=data.location,
            address=data.address,
            budget=data.budget,
            currency=data.currency.upper(),
            status=EventStatus.PUBLISHED if data.is_public else EventStatus.DRAFT,
            required_roles=data.required_roles,
            tags=data.tags,
            requirements=data.requirements,
            is_public=data.is_public,
            deadline_date=data.deadline_date,
            max_applicants=data.max_applicants,
        )
        self.db.add(event)
        await self.db.commit()
        await self.db.refresh(event)
        logger.info(f"Event {event.id} created by {user.id} ({event.status.value})")
        return event

    async def update_event(self, event_id: uuid.UUID, user: User, data: EventUpdateRequest) -> Event:
        event = await self.get_owned_event(event_id, user)
        changes = data.model_dump(exclude_unset=True)

        start = changes.get("start_date", ensure_utc(event.start_date))
        end = changes.get("end_date", ensure_utc(event.end_date))
        if end < start:
            raise ValidationError("endDate must be on or after startDate")

        if "event_type" in changes:
            changes["event_type"] = EventType(changes["event_type"])
        if "status" in changes:
            changes["status"] = EventStatus(changes["status"])
        if "currency" in changes:
            changes["currency"] = changes["currency"].upper()
        for field, value in changes.items():
            setattr(event, field, value)

        # Professionals with an active booking hear about the change
        booked = (await self.db.execute(
            select(Booking.professional_id).where(
                Booking.event_id == event.id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            ).distinct()
        )).scalars().all()
        for professional_id in booked:
            await self.notifications.send_event_notification(professional_id, event)

        await self.db.commit()
        await self.db.refresh(event)
        await self.notifications.publish_pending()
        return event

    async def publish_event(self, event_id: uuid.UUID, user: User) -> Event:
        event = await self.get_owned_event(event_id, user)
        if event.status == EventStatus.PUBLISHED:
            return event
        if event.status != EventStatus.DRAFT:
            raise ValidationError(f"Cannot publish an event that is {EventStatus(event.status).value}")
        event.status = EventStatus.PUBLISHED
        event.is_public = True
        await self.db.commit()
        await self.db.refresh(event)
        return event

    async def delete_event(self, event_id: uuid.UUID, user: User) -> None:
        event = await self.get_owned_event(event_id, user)
        await self.db.delete(event)
        await self.db.commit()
        logger.info(f"Event {event_id} deleted by {user.id}")

    # ── Queries ───────────────────────────────────────────────
    async def get_event(self, event_id: uuid.UUID, viewer: Optional[User]) -> dict:
        event = await self.get_event_or_404(event_id)
        if not self.is_visible_to(event, viewer):
            raise AuthorizationError("This event is not public")
        return (await self.with_counts([event]))[0]

    async def get_my_events(
        self, user: User, status: Optional[EventStatus] = None, page: int = 1, limit: int = 10
    ) -> tuple[list[dict], dict]:
        query = select(Event).where(Event.creator_id == user.id)
        if status:
            query = query.where(Event.status == EventStatus(status))
        total = await self.db.scalar(select(func.count()).select_from(query.subquery())) or 0
        events = (await self.db.execute(
            query.order_by(Event.start_date.desc(), Event.created_at.desc())
            .offset(offset_for(page, limit))
            .limit(limit)
        )).scalars().all()
        return await self.with_counts(list(events)), build_pagination(page, limit, total)
