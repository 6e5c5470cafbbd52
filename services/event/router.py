"""
services/event/router.py
Event CRUD for planners, public event listing, and applying to an event.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.application.service import ApplicationService
from services.event.service import EventService, event_payload
from services.notification.service import NotificationService
from services.realtime.dependencies import get_realtime
from services.search.router import split_csv
from services.search.service import SearchService
from shared.middleware.auth import (
    get_optional_user,
    require_planner,
    require_professional,
)
from shared.middleware.rate_limit import RateLimit
from shared.models.models import EventStatus, EventType, User
from shared.schemas.schemas import (
    ApplicationResponse,
    ApplyRequest,
    EventCreateRequest,
    EventSearchFilters,
    EventUpdateRequest,
)
from shared.utils.pagination import ok

router = APIRouter(prefix="/events", tags=["Events"])


def get_event_service(db: AsyncSession = Depends(get_db), realtime=Depends(get_realtime)) -> EventService:
    return EventService(db, NotificationService(db, realtime))


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(RateLimit("event_creation"))])
async def create_event(
    data: EventCreateRequest,
    current_user: User = Depends(require_planner),
    service: EventService = Depends(get_event_service),
):
    event = await service.create_event(current_user, data)
    return ok(event_payload(event), "Event created successfully")


@router.get("")
async def list_events(
    event_type: Optional[EventType] = Query(None, alias="eventType"),
    location: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None, alias="dateFrom"),
    date_to: Optional[date] = Query(None, alias="dateTo"),
    budget_min: Optional[float] = Query(None, alias="budgetMin", ge=0),
    budget_max: Optional[float] = Query(None, alias="budgetMax", ge=0),
    required_roles: Optional[str] = Query(None, alias="requiredRoles"),
    search: Optional[str] = Query(None, max_length=200),
    featured: Optional[bool] = Query(None),
    sort_by: str = Query("date", alias="sortBy", pattern="^(date|budget|relevance|newest)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Public, published events. Same filters as /search/events."""
    filters = EventSearchFilters(
        event_type=event_type,
        location=location,
        date_from=date_from,
        date_to=date_to,
        budget_min=budget_min,
        budget_max=budget_max,
        required_roles=split_csv(required_roles),
        search=search,
        featured=featured,
        sort_by=sort_by,
    )
    hits, pagination = await SearchService(db).search_events(filters, page, limit)
    return ok(
        [event_payload(h.event, h.application_count, h.booking_count) for h in hits],
        pagination=pagination,
    )


@router.get("/my")
async def my_events(
    status_filter: Optional[EventStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(require_planner),
    service: EventService = Depends(get_event_service),
):
    items, pagination = await service.get_my_events(current_user, status_filter, page, limit)
    return ok(items, pagination=pagination)


@router.get("/{event_id}")
async def get_event(
    event_id: UUID,
    current_user: Optional[User] = Depends(get_optional_user),
    service: EventService = Depends(get_event_service),
):
    return ok(await service.get_event(event_id, current_user))


@router.put("/{event_id}")
async def update_event(
    event_id: UUID,
    data: EventUpdateRequest,
    current_user: User = Depends(require_planner),
    service: EventService = Depends(get_event_service),
):
    event = await service.update_event(event_id, current_user, data)
    return ok(event_payload(event), "Event updated successfully")


@router.patch("/{event_id}/publish")
async def publish_event(
    event_id: UUID,
    current_user: User = Depends(require_planner),
    service: EventService = Depends(get_event_service),
):
    event = await service.publish_event(event_id, current_user)
    return ok(event_payload(event), "Event published")


@router.delete("/{event_id}")
async def delete_event(
    event_id: UUID,
    current_user: User = Depends(require_planner),
    service: EventService = Depends(get_event_service),
):
    await service.delete_event(event_id, current_user)
    return ok(None, "Event deleted successfully")


@router.post("/{event_id}/apply", status_code=status.HTTP_201_CREATED)
async def apply_to_event(
    event_id: UUID,
    data: ApplyRequest,
    current_user: User = Depends(require_professional),
    db: AsyncSession = Depends(get_db),
    realtime=Depends(get_realtime),
):
    service = ApplicationService(db, NotificationService(db, realtime))
    application = await service.apply(event_id, current_user, data)
    return ok(
        ApplicationResponse.model_validate(application).model_dump(by_alias=True),
        "Application submitted successfully",
    )
