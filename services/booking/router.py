"""
services/booking/router.py
Booking endpoints: planners request, professionals confirm or decline,
either side moves the booking through its lifecycle.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.booking.service import BookingService
from services.notification.service import NotificationService
from services.realtime.dependencies import get_realtime
from shared.middleware.auth import get_current_user, require_planner
from shared.middleware.rate_limit import RateLimit
from shared.models.models import Booking, BookingStatus, User
from shared.schemas.schemas import BookingCreateRequest, BookingResponse, BookingStatusUpdateRequest
from shared.utils.pagination import ok

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(db: AsyncSession = Depends(get_db), realtime=Depends(get_realtime)) -> BookingService:
    return BookingService(db, NotificationService(db, realtime))


def _dump(booking: Booking) -> dict:
    return BookingResponse.model_validate(booking).model_dump(by_alias=True)


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(RateLimit("booking"))])
async def create_booking(
    data: BookingCreateRequest,
    current_user: User = Depends(require_planner),
    service: BookingService = Depends(get_booking_service),
):
    booking = await service.create_booking(current_user, data)
    return ok(_dump(booking), "Booking request sent")


@router.get("")
async def list_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    items, pagination = await service.list_bookings(current_user, status_filter, page, limit)
    return ok([_dump(b) for b in items], pagination=pagination)


@router.get("/stats")
async def booking_stats(
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return ok(await service.get_stats(current_user))


@router.get("/{booking_id}")
async def get_booking(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return ok(_dump(await service.get_booking(booking_id, current_user)))


@router.patch("/{booking_id}/status")
async def update_booking_status(
    booking_id: UUID,
    data: BookingStatusUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    booking = await service.update_status(booking_id, current_user, data.status, data.reason)
    return ok(_dump(booking), "Booking status updated")
