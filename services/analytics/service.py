"""
services/analytics/service.py
Read-only aggregations for the admin analytics screens and the
per-role personal dashboard.

Every period metric compares a window with the window of equal length
immediately before it. Without an explicit range the window is the
current month to date, compared with the whole previous calendar month.
Growth percentages are rounded here, at the response layer.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from shared.models.models import (
    ApplicationStatus,
    Booking,
    BookingStatus,
    Conversation,
    CreativeProfile,
    Event,
    EventApplication,
    EventStatus,
    Message,
    PortfolioProject,
    PortfolioView,
    Review,
    User,
    UserRole,
)
from shared.utils.dates import days_ago, month_window, previous_month_window, previous_window
from shared.utils.exceptions import ValidationError


def calculate_growth_percentage(current: float, previous: float) -> float:
    """(current - previous) / previous * 100, and 0 when there is no previous value."""
    if previous == 0:
        return 0.0
    return (current - previous) / previous * 100


def distribution(counts: dict) -> list[dict]:
    """{value: count} -> [{value, count, percentage}] sorted by count, largest first."""
    total = sum(counts.values())
    rows = [
        {
            "value": getattr(k, "value", k),
            "count": n,
            "percentage": round(n / total * 100, 2) if total else 0.0,
        }
        for k, n in counts.items()
    ]
    return sorted(rows, key=lambda r: r["count"], reverse=True)


@dataclass
class DateRange:
    start: datetime
    end: datetime
    # Comparison window; None means the equal-length window before start.
    comparison: Optional[tuple[datetime, datetime]] = None

    @classmethod
    def resolve(
        cls,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> "DateRange":
        if start is None and end is None:
            return cls(*month_window(now), comparison=previous_month_window(now))
        default_start, now = month_window(now)
        start, end = start or default_start, end or now
        if end < start:
            raise ValidationError("endDate must be on or after startDate")
        return cls(start, end)

    @property
    def previous(self) -> "DateRange":
        if self.comparison is not None:
            return DateRange(*self.comparison)
        return DateRange(*previous_window(self.start, self.end))

    def as_dict(self) -> dict:
        return {"startDate": self.start, "endDate": self.end}


class AnalyticsService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Helpers ───────────────────────────────────────────────
    async def _count(self, column, *where) -> int:
        return await self.db.scalar(select(func.count(column)).where(*where)) or 0

    async def _sum(self, column, *where) -> float:
        return float(await self.db.scalar(select(func.coalesce(func.sum(column), 0)).where(*where)) or 0)

    async def _grouped(self, column, *where) -> dict:
        rows = await self.db.execute(select(column, func.count()).where(*where).group_by(column))
        return {key: n for key, n in rows.all()}

    async def _period(self, created_at, window: DateRange, *where) -> dict:
        """Count rows created in the window and in the previous window."""
        prev = window.previous
        current = await self._count(created_at, created_at >= window.start, created_at <= window.end, *where)
        previous = await self._count(created_at, created_at >= prev.start, created_at < prev.end, *where)
        return {
            "current": current,
            "previous": previous,
            "growth": round(calculate_growth_percentage(current, previous), 2),
        }

    # ── Admin analytics ───────────────────────────────────────
    async def get_platform_statistics(self, window: DateRange) -> dict:
        avg_rating = await self.db.scalar(select(func.avg(Review.rating)).where(Review.is_public.is_(True)))
        return {
            "range": window.as_dict(),
            "totals": {
                "users": await self._count(User.id),
                "planners": await self._count(User.id, User.role == UserRole.EVENT_PLANNER),
                "professionals": await self._count(User.id, User.role == UserRole.CREATIVE_PROFESSIONAL),
                "events": await self._count(Event.id),
                "publishedEvents": await self._count(Event.id, Event.status == EventStatus.PUBLISHED),
                "bookings": await self._count(Booking.id),
                "reviews": await self._count(Review.id),
                "messages": await self._count(Message.id),
            },
            "newUsers": await self._period(User.created_at, window),
            "newEvents": await self._period(Event.created_at, window),
            "newBookings": await self._period(Booking.created_at, window),
            "averageRating": round(float(avg_rating), 2) if avg_rating is not None else 0.0,
        }

    async def get_users_analytics(self, window: DateRange) -> dict:
        return {
            "range": window.as_dict(),
            "newUsers": await self._period(User.created_at, window),
            "byRole": distribution(await self._grouped(User.role)),
            "active": await self._count(User.id, User.is_active.is_(True)),
            "inactive": await self._count(User.id, User.is_active.is_(False)),
            "verified": await self._count(User.id, User.is_verified.is_(True)),
            "onboarded": await self._count(User.id, User.username.is_not(None)),
        }

    async def get_event_analytics(self, window: DateRange) -> dict:
        in_window = (Event.created_at >= window.start, Event.created_at <= window.end)
        avg_budget = await self.db.scalar(select(func.avg(Event.budget)).where(*in_window))
        return {
            "range": window.as_dict(),
            "newEvents": await self._period(Event.created_at, window),
            "byType": distribution(await self._grouped(Event.event_type, *in_window)),
            "byStatus": distribution(await self._grouped(Event.status, *in_window)),
            "averageBudget": round(float(avg_budget), 2) if avg_budget is not None else 0.0,
            "applications": await self._period(EventApplication.created_at, window),
        }

    async def get_booking_analytics(self, window: DateRange) -> dict:
        in_window = (Booking.created_at >= window.start, Booking.created_at <= window.end)
        by_status = await self._grouped(Booking.status, *in_window)
        total = sum(by_status.values())

        def rate(status: BookingStatus) -> float:
            return round(by_status.get(status, 0) / total * 100, 2) if total else 0.0

        return {
            "range": window.as_dict(),
            "newBookings": await self._period(Booking.created_at, window),
            "byStatus": distribution(by_status),
            "completionRate": rate(BookingStatus.COMPLETED),
            "cancellationRate": rate(BookingStatus.CANCELLED),
        }

    async def get_revenue_analytics(self, window: DateRange) -> dict:
        """Booking value of COMPLETED bookings, attributed to the booking's start date."""
        prev = window.previous
        completed = Booking.status == BookingStatus.COMPLETED
        current = await self._sum(Booking.rate, completed, Booking.start_date >= window.start, Booking.start_date <= window.end)
        previous = await self._sum(Booking.rate, completed, Booking.start_date >= prev.start, Booking.start_date < prev.end)
        count = await self._count(Booking.id, completed, Booking.start_date >= window.start, Booking.start_date <= window.end)

        rows = await self.db.execute(
            select(Booking.currency, func.sum(Booking.rate), func.count(Booking.id))
            .where(completed, Booking.start_date >= window.start, Booking.start_date <= window.end)
            .group_by(Booking.currency)
        )
        return {
            "range": window.as_dict(),
            "revenue": {
                "current": current,
                "previous": previous,
                "growth": round(calculate_growth_percentage(current, previous), 2),
            },
            "completedBookings": count,
            "averageBookingValue": round(current / count, 2) if count else 0.0,
            "byCurrency": [
                {"currency": currency, "total": float(total or 0), "count": n}
                for currency, total, n in rows.all()
            ],
        }

    # ── Personal dashboard ────────────────────────────────────
    async def get_dashboard(self, user: User) -> dict:
        match user.role:
            case UserRole.EVENT_PLANNER:
                return await self._planner_dashboard(user)
            case UserRole.CREATIVE_PROFESSIONAL:
                return await self._professional_dashboard(user)
            case UserRole.ADMIN:
                return await self.get_platform_statistics(DateRange.resolve())

    async def _unread_messages(self, user_id: uuid.UUID) -> int:
        return await self._count(Message.id, Message.recipient_id == user_id, Message.is_read.is_(False))

    async def _planner_dashboard(self, user: User) -> dict:
        own_events = select(Event.id).where(Event.creator_id == user.id)
        return {
            "role": UserRole.EVENT_PLANNER.value,
            "events": {
                "total": await self._count(Event.id, Event.creator_id == user.id),
                "byStatus": distribution(await self._grouped(Event.status, Event.creator_id == user.id)),
            },
            "applicationsReceived": distribution(
                await self._grouped(EventApplication.status, EventApplication.event_id.in_(own_events))
            ),
            "bookings": distribution(await self._grouped(Booking.status, Booking.planner_id == user.id)),
            "totalSpent": await self._sum(
                Booking.rate, Booking.planner_id == user.id, Booking.status == BookingStatus.COMPLETED
            ),
            "conversations": await self._count(
                Conversation.id,
                (Conversation.participant_a_id == user.id) | (Conversation.participant_b_id == user.id),
            ),
            "unreadMessages": await self._unread_messages(user.id),
        }

    async def _professional_dashboard(self, user: User) -> dict:
        profile_id = select(CreativeProfile.id).where(CreativeProfile.user_id == user.id).scalar_subquery()
        avg_rating = await self.db.scalar(
            select(func.avg(Review.rating)).where(Review.reviewee_id == user.id, Review.is_public.is_(True))
        )
        applications = await self._grouped(EventApplication.status, EventApplication.professional_id == profile_id)
        submitted = sum(applications.values())
        return {
            "role": UserRole.CREATIVE_PROFESSIONAL.value,
            "applications": distribution(applications),
            "acceptanceRate": (
                round(applications.get(ApplicationStatus.ACCEPTED, 0) / submitted * 100, 2) if submitted else 0.0
            ),
            "bookings": distribution(await self._grouped(Booking.status, Booking.professional_id == user.id)),
            "totalEarnings": await self._sum(
                Booking.rate, Booking.professional_id == user.id, Booking.status == BookingStatus.COMPLETED
            ),
            "averageRating": round(float(avg_rating), 1) if avg_rating is not None else 0.0,
            "totalReviews": await self._count(Review.id, Review.reviewee_id == user.id, Review.is_public.is_(True)),
            "portfolio": {
                "projects": await self._count(PortfolioProject.id, PortfolioProject.user_id == user.id),
                "totalViews": await self._count(PortfolioView.id, PortfolioView.user_id == user.id),
                "recentViews": await self._count(
                    PortfolioView.id,
                    PortfolioView.user_id == user.id,
                    PortfolioView.viewed_at >= days_ago(settings.PORTFOLIO_RECENT_VIEWS_DAYS),
                ),
            },
            "unreadMessages": await self._unread_messages(user.id),
        }
