"""
services/calendar/service.py
Personal calendar entries, their recurrence expansion and reminders.

Recurring entries are stored once with a rule; occurrences are expanded
with dateutil's rrule for whatever window is being viewed. Reminders fire
once per occurrence: each reminder remembers the occurrence start it last
fired for.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from dateutil.parser import isoparse
from dateutil.rrule import DAILY, MONTHLY, WEEKLY, YEARLY, rrule
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import flag_modified

from config.settings import settings
from services.notification.service import NotificationService
from shared.models.models import (
    CalendarEvent,
    CalendarEventStatus,
    CalendarEventType,
    NotificationPriority,
    NotificationType,
    User,
)
from shared.schemas.schemas import CalendarEventCreateRequest, CalendarEventUpdateRequest
from shared.utils.dates import ensure_utc, utcnow
from shared.utils.exceptions import AuthorizationError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

FREQUENCIES = {"DAILY": DAILY, "WEEKLY": WEEKLY, "MONTHLY": MONTHLY, "YEARLY": YEARLY}

# Longest reminder lead time a Reminder accepts, in minutes
MAX_REMINDER_MINUTES = 40320


def build_rule(event: CalendarEvent) -> Optional[rrule]:
    rule = event.recurrence_rule
    if not rule:
        return None
    kwargs = {"dtstart": ensure_utc(event.start_time), "interval": rule.get("interval", 1)}
    if rule.get("until"):
        kwargs["until"] = ensure_utc(isoparse(rule["until"]))
    if rule.get("count"):
        kwargs["count"] = rule["count"]
    if rule.get("daysOfWeek"):
        kwargs["byweekday"] = rule["daysOfWeek"]
    return rrule(FREQUENCIES[rule["frequency"]], **kwargs)


def expand(event: CalendarEvent, start: datetime, end: datetime) -> list[tuple[datetime, datetime]]:
    """(start, end) of every occurrence overlapping [start, end)."""
    first = ensure_utc(event.start_time)
    duration = ensure_utc(event.end_time) - first
    rule = build_rule(event)
    candidates = [first] if rule is None else rule.between(start - duration, end, inc=True)
    return [(s, s + duration) for s in candidates if s < end and s + duration > start]


def next_occurrence(event: CalendarEvent, after: datetime) -> Optional[datetime]:
    rule = build_rule(event)
    if rule is None:
        first = ensure_utc(event.start_time)
        return first if first > after else None
    return rule.after(after)


def _dump_rule(rule) -> Optional[dict]:
    return rule.model_dump(mode="json", by_alias=True, exclude_none=True) if rule else None


def _dump_list(items) -> list[dict]:
    return [i.model_dump(mode="json", by_alias=True) for i in items]


class CalendarService:
    def __init__(self, db: AsyncSession, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    # ── Read ──────────────────────────────────────────────────
    async def get_event(self, event_id: uuid.UUID, user: User) -> CalendarEvent:
        """Own entries and public ones; anything else is reported as missing."""
        event = await self.db.get(CalendarEvent, event_id)
        if event is None or (event.user_id != user.id and not event.is_public):
            raise NotFoundError("Calendar event not found")
        return event

    async def _get_owned(self, event_id: uuid.UUID, user: User) -> CalendarEvent:
        event = await self.get_event(event_id, user)
        if event.user_id != user.id:
            raise AuthorizationError("You can only change your own calendar events")
        return event

    async def list_events(
        self, user: User, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> list[CalendarEvent]:
        query = select(CalendarEvent).where(CalendarEvent.user_id == user.id)
        if end is not None:
            query = query.where(CalendarEvent.start_time < end)
        events = (await self.db.execute(query.order_by(CalendarEvent.start_time.asc()))).scalars().all()
        if start is None:
            return list(events)
        # A recurring entry that began earlier may still have occurrences in the window
        return [e for e in events if e.is_recurring or ensure_utc(e.end_time) > start]

    async def get_occurrences(self, user: User, start: datetime, end: datetime) -> list[dict]:
        if end <= start:
            raise ValidationError("to must be after from")
        if end - start > timedelta(days=settings.CALENDAR_MAX_WINDOW_DAYS):
            raise ValidationError(f"The window may span at most {settings.CALENDAR_MAX_WINDOW_DAYS} days")

        occurrences = []
        for event in await self.list_events(user, start, end):
            if event.status == CalendarEventStatus.CANCELLED:
                continue
            for occ_start, occ_end in expand(event, start, end):
                occurrences.append({
                    "event_id": event.id,
                    "title": event.title,
                    "event_type": event.event_type,
                    "color": event.color,
                    "start_time": occ_start,
                    "end_time": occ_end,
                })
        return sorted(occurrences, key=lambda o: o["start_time"])

    # ── Write ─────────────────────────────────────────────────
    async def create_event(self, user: User, data: CalendarEventCreateRequest) -> CalendarEvent:
        event = CalendarEvent(
            id=uuid.uuid4(),
            user_id=user.id,
            title=data.title,
            description=data.description,
            start_time=data.start_time,
            end_time=data.end_time,
            location=data.location,
            event_type=CalendarEventType(data.event_type),
            status=CalendarEventStatus.SCHEDULED,
            recurrence_rule=_dump_rule(data.recurrence_rule),
            color=data.color,
            is_public=data.is_public,
            # New invitations always start out pending
            attendees=[{**a, "status": "INVITED"} for a in _dump_list(data.attendees)],
            reminders=_dump_list(data.reminders),
            extra=data.metadata,
        )
        self.db.add(event)
        await self.db.commit()
        await self.db.refresh(event)
        logger.info(f"Calendar event {event.id} created by {user.id}")
        return event

    async def update_event(
        self, event_id: uuid.UUID, user: User, data: CalendarEventUpdateRequest
    ) -> CalendarEvent:
        event = await self._get_owned(event_id, user)
        changes = data.model_dump(exclude_unset=True)

        start = changes.get("start_time", ensure_utc(event.start_time))
        end = changes.get("end_time", ensure_utc(event.end_time))
        if end <= start:
            raise ValidationError("endTime must be after startTime")

        if "recurrence_rule" in changes:
            changes["recurrence_rule"] = _dump_rule(data.recurrence_rule)
        if "attendees" in changes:
            changes["attendees"] = _dump_list(data.attendees)
        if "reminders" in changes:
            changes["reminders"] = _dump_list(data.reminders)
        elif "start_time" in changes or "recurrence_rule" in changes:
            # Rescheduled occurrences are due fresh reminders
            changes["reminders"] = [{k: v for k, v in r.items() if k != "sentFor"} for r in event.reminders]
        if "metadata" in changes:
            changes["extra"] = changes.pop("metadata")
        if "event_type" in changes:
            changes["event_type"] = CalendarEventType(changes["event_type"])
        if "status" in changes:
            changes["status"] = CalendarEventStatus(changes["status"])

        for field, value in changes.items():
            setattr(event, field, value)
        await self.db.commit()
        await self.db.refresh(event)
        return event

    async def delete_event(self, event_id: uuid.UUID, user: User) -> None:
        event = await self._get_owned(event_id, user)
        await self.db.delete(event)
        await self.db.commit()

    # ── Reminders ─────────────────────────────────────────────
    async def send_due_reminders(self, now: Optional[datetime] = None) -> dict:
        """
        Notify owners whose next occurrence is within a reminder's lead time.
        EMAIL reminders also queue an email; push follows the owner's FCM token.
        """
        now = now or utcnow()
        horizon = now + timedelta(minutes=MAX_REMINDER_MINUTES)
        events = (await self.db.execute(
            select(CalendarEvent).where(
                CalendarEvent.status == CalendarEventStatus.SCHEDULED,
                CalendarEvent.start_time <= horizon,
                or_(CalendarEvent.start_time > now, CalendarEvent.recurrence_rule.is_not(None)),
            )
        )).scalars().all()

        sent = 0
        for event in events:
            occurrence = next_occurrence(event, now)
            if occurrence is None or not event.reminders:
                continue
            stamp = occurrence.isoformat()
            reminders = []
            for reminder in event.reminders:
                due = occurrence - timedelta(minutes=reminder["minutes"]) <= now
                if due and reminder.get("sentFor") != stamp:
                    await self.notifications.send_notification(
                        user_id=event.user_id,
                        type=NotificationType.EVENT_REMINDER,
                        title=f"Upcoming: {event.title}",
                        message=f'"{event.title}" starts in {reminder["minutes"]} minutes',
                        metadata={"calendarEventId": str(event.id), "startTime": stamp},
                        priority=NotificationPriority.HIGH,
                        send_email=reminder.get("method") == "EMAIL",
                    )
                    reminder = {**reminder, "sentFor": stamp}
                    sent += 1
                reminders.append(reminder)
            event.reminders = reminders
            flag_modified(event, "reminders")

        await self.db.commit()
        await self.notifications.publish_pending()
        logger.info(f"Calendar reminders sent: {sent}")
        return {"reminders": sent}
