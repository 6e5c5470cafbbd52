"""
services/calendar/router.py
Personal calendar: entries, an expanded occurrence view and reminders.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.calendar.service import CalendarService
from services.notification.service import NotificationService
from services.realtime.dependencies import get_realtime
from shared.middleware.auth import get_current_user
from shared.models.models import CalendarEvent, User
from shared.schemas.schemas import (
    CalendarEventCreateRequest,
    CalendarEventResponse,
    CalendarEventUpdateRequest,
    OccurrenceResponse,
)
from shared.utils.dates import ensure_utc
from shared.utils.pagination import ok

router = APIRouter(prefix="/calendar", tags=["Calendar"])


def get_calendar_service(db: AsyncSession = Depends(get_db), realtime=Depends(get_realtime)) -> CalendarService:
    return CalendarService(db, NotificationService(db, realtime))


def _dump(event: CalendarEvent) -> dict:
    return CalendarEventResponse.model_validate(event).model_dump(by_alias=True)


@router.get("/events")
async def list_events(
    start: Optional[datetime] = Query(None, alias="from"),
    end: Optional[datetime] = Query(None, alias="to"),
    current_user: User = Depends(get_current_user),
    service: CalendarService = Depends(get_calendar_service),
):
    """The caller's entries, earliest first, optionally limited to a window."""
    events = await service.list_events(current_user, ensure_utc(start), ensure_utc(end))
    return ok([_dump(e) for e in events])


@router.post("/events", status_code=status.HTTP_201_CREATED)
async def create_event(
    data: CalendarEventCreateRequest,
    current_user: User = Depends(get_current_user),
    service: CalendarService = Depends(get_calendar_service),
):
    event = await service.create_event(current_user, data)
    return ok(_dump(event), "Calendar event created")


@router.get("/occurrences")
async def list_occurrences(
    start: datetime = Query(..., alias="from"),
    end: datetime = Query(..., alias="to"),
    current_user: User = Depends(get_current_user),
    service: CalendarService = Depends(get_calendar_service),
):
    """Every occurrence in [from, to), with recurring entries expanded."""
    occurrences = await service.get_occurrences(current_user, ensure_utc(start), ensure_utc(end))
    return ok([OccurrenceResponse(**o).model_dump(by_alias=True) for o in occurrences])


@router.get("/events/{event_id}")
async def get_event(
    event_id: UUID,
    current_user: User = Depends(get_current_user),
    service: CalendarService = Depends(get_calendar_service),
):
    return ok(_dump(await service.get_event(event_id, current_user)))


@router.put("/events/{event_id}")
async def update_event(
    event_id: UUID,
    data: CalendarEventUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: CalendarService = Depends(get_calendar_service),
):
    event = await service.update_event(event_id, current_user, data)
    return ok(_dump(event), "Calendar event updated")


@router.delete("/events/{event_id}")
async def delete_event(
    event_id: UUID,
    current_user: User = Depends(get_current_user),
    service: CalendarService = Depends(get_calendar_service),
):
    await service.delete_event(event_id, current_user)
    return ok(None, "Calendar event deleted")
