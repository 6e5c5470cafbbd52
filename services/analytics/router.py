"""
services/analytics/router.py
Admin analytics and the per-role personal dashboard.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from shared.middleware.auth import get_current_user, require_admin
from shared.models.models import User
from shared.utils.dates import end_of_day, start_of_day
from shared.utils.pagination import ok
from services.analytics.service import AnalyticsService, DateRange

router = APIRouter(prefix="/analytics", tags=["Analytics"])


def date_range(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
) -> DateRange:
    return DateRange.resolve(
        start_of_day(start_date) if start_date else None,
        end_of_day(end_date) if end_date else None,
    )


@router.get("/platform")
async def platform_statistics(
    window: DateRange = Depends(date_range),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return ok(await AnalyticsService(db).get_platform_statistics(window))


@router.get("/users")
async def users_analytics(
    window: DateRange = Depends(date_range),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return ok(await AnalyticsService(db).get_users_analytics(window))


@router.get("/events")
async def event_analytics(
    window: DateRange = Depends(date_range),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return ok(await AnalyticsService(db).get_event_analytics(window))


@router.get("/bookings")
async def booking_analytics(
    window: DateRange = Depends(date_range),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return ok(await AnalyticsService(db).get_booking_analytics(window))


@router.get("/revenue")
async def revenue_analytics(
    window: DateRange = Depends(date_range),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return ok(await AnalyticsService(db).get_revenue_analytics(window))


@router.get("/dashboard")
async def personal_dashboard(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Planner, professional or admin dashboard depending on the caller's role."""
    return ok(await AnalyticsService(db).get_dashboard(current_user))
