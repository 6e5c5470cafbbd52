"""
services/application/router.py
Listing, reviewing and withdrawing event applications.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.application.service import ApplicationService
from services.notification.service import NotificationService
from services.realtime.dependencies import get_realtime
from shared.middleware.auth import get_current_user, require_planner, require_professional
from shared.models.models import ApplicationStatus, EventApplication, User
from shared.schemas.schemas import (
    ApplicationResponse,
    ApplicationStatsResponse,
    ApplicationStatusUpdateRequest,
    ApplicationUpdateRequest,
)
from shared.utils.pagination import ok

router = APIRouter(prefix="/applications", tags=["Applications"])


def get_application_service(db: AsyncSession = Depends(get_db), realtime=Depends(get_realtime)) -> ApplicationService:
    return ApplicationService(db, NotificationService(db, realtime))


def _dump(application: EventApplication) -> dict:
    return ApplicationResponse.model_validate(application).model_dump(by_alias=True)


@router.get("")
async def list_applications(
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    event_id: Optional[UUID] = Query(None, alias="eventId"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
):
    """Planners see applications to their events; professionals see their own."""
    items, pagination = await service.list_applications(current_user, status_filter, event_id, page, limit)
    return ok([_dump(a) for a in items], pagination=pagination)


@router.get("/my")
async def my_applications(
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(require_professional),
    service: ApplicationService = Depends(get_application_service),
):
    items, pagination = await service.list_applications(current_user, status_filter, None, page, limit)
    return ok([_dump(a) for a in items], pagination=pagination)


@router.get("/stats")
async def application_stats(
    current_user: User = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
):
    stats = await service.get_stats(current_user)
    return ok(ApplicationStatsResponse(**stats).model_dump(by_alias=True))


@router.get("/event/{event_id}")
async def event_applications(
    event_id: UUID,
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
):
    items, pagination = await service.get_event_applications(event_id, current_user, status_filter, page, limit)
    return ok([_dump(a) for a in items], pagination=pagination)


@router.get("/{application_id}")
async def get_application(
    application_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
):
    return ok(_dump(await service.get_application(application_id, current_user)))


@router.patch("/{application_id}/status")
async def update_application_status(
    application_id: UUID,
    data: ApplicationStatusUpdateRequest,
    current_user: User = Depends(require_planner),
    service: ApplicationService = Depends(get_application_service),
):
    application = await service.update_status(application_id, current_user, data.status)
    return ok(_dump(application), "Application status updated")


@router.put("/{application_id}")
async def update_application(
    application_id: UUID,
    data: ApplicationUpdateRequest,
    current_user: User = Depends(require_professional),
    service: ApplicationService = Depends(get_application_service),
):
    application = await service.update_application(application_id, current_user, data)
    return ok(_dump(application), "Application updated")


@router.delete("/{application_id}")
async def withdraw_application(
    application_id: UUID,
    current_user: User = Depends(require_professional),
    service: ApplicationService = Depends(get_application_service),
):
    await service.withdraw(application_id, current_user)
    return ok(None, "Application withdrawn")
