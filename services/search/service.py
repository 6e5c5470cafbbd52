"""
services/search/service.py
Professional and event search: filtering, ranking, pagination, facets
and autocomplete suggestions.

Scalar filters (availability, rate bounds, location, minimum rating, dates,
budget) run in SQL. Set-membership filters over JSON tag lists
(categories, skills, required roles) and relevance scoring run in Python
over the SQL result so the same code works on every backend. Pagination is
applied after ranking, so totals are exact. Equal sort keys always fall
back to creation time, newest first.
"""

import logging
import uuid
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.redis_client import RedisCache
from shared.models.models import (
    Booking,
    CreativeProfile,
    Event,
    EventApplication,
    EventStatus,
    EventType,
    Review,
    User,
    UserRole,
)
from shared.schemas.schemas import EventSearchFilters, ProfessionalSearchFilters
from shared.utils.dates import end_of_day, start_of_day, utcnow
from shared.utils.pagination import paginate_list

logger = logging.getLogger(__name__)


@dataclass
class ProfessionalHit:
    profile: CreativeProfile
    user: User
    average_rating: Optional[float]
    total_reviews: int
    score: int = 0

    def as_dict(self) -> dict:
        p = self.profile
        return {
            "id": p.id,
            "user_id": p.user_id,
            "categories": p.categories or [],
            "skills": p.skills or [],
            "hourly_rate": p.hourly_rate,
            "daily_rate": p.daily_rate,
            "is_available": p.is_available,
            "experience": p.experience,
            "created_at": p.created_at,
            "user": self.user,
            "location": self.user.location,
            "bio": self.user.bio,
            "average_rating": round(self.average_rating, 1) if self.average_rating is not None else 0.0,
            "total_reviews": self.total_reviews,
        }


@dataclass
class EventHit:
    event: Event
    application_count: int
    booking_count: int
    score: int = 0


# ── Generic helpers ───────────────────────────────────────────

def _lower(values: Iterable[str]) -> set[str]:
    return {v.lower() for v in values or []}


def _overlaps(wanted: Iterable[str], have: Iterable[str]) -> bool:
    return bool(_lower(wanted) & _lower(have))


def _text_hits(needle: str, *haystacks: Optional[str]) -> int:
    needle = needle.lower()
    return sum(1 for h in haystacks if h and needle in h.lower())


def _sort_newest_first(items: list, created) -> None:
    items.sort(key=created, reverse=True)


def _nulls_last(value: Optional[float], descending: bool = False):
    """Key placing None after every real value in either direction."""
    if descending:
        return (value is not None, value or 0.0)
    return (value is None, value or 0.0)


def rating_subquery():
    """Average + count of public review ratings per reviewee."""
    return (
        select(
            Review.reviewee_id.label("user_id"),
            func.avg(Review.rating).label("avg_rating"),
            func.count(Review.id).label("review_count"),
        )
        .where(Review.is_public.is_(True))
        .group_by(Review.reviewee_id)
        .subquery()
    )


class SearchService:
    def __init__(self, db: AsyncSession, cache: Optional[RedisCache] = None):
        self.db = db
        self.cache = cache or RedisCache(None)

    # ── Professionals ─────────────────────────────────────────
    async def _professional_hits(self, filters: ProfessionalSearchFilters) -> List[ProfessionalHit]:
        ratings = rating_subquery()
        avg_rating = ratings.c.avg_rating
        query = (
            select(CreativeProfile, User, avg_rating, ratings.c.review_count)
            .join(User, User.id == CreativeProfile.user_id)
            .outerjoin(ratings, ratings.c.user_id == CreativeProfile.user_id)
            .where(User.is_active.is_(True), User.role == UserRole.CREATIVE_PROFESSIONAL)
        )
        if filters.available is not None:
            query = query.where(CreativeProfile.is_available.is_(filters.available))
        if filters.location:
            query = query.where(User.location.icontains(filters.location, autoescape=True))
        if filters.max_rate is not None:
            query = query.where(CreativeProfile.hourly_rate <= filters.max_rate)
        if filters.min_rate is not None:
            query = query.where(CreativeProfile.hourly_rate >= filters.min_rate)
        if filters.min_rating is not None:
            query = query.where(func.coalesce(avg_rating, 0) >= filters.min_rating)

        rows = (await self.db.execute(query)).all()

        hits = []
        for profile, user, avg, count in rows:
            if filters.categories and not _overlaps(filters.categories, profile.categories):
                continue
            if filters.skills and not _overlaps(filters.skills, profile.skills):
                continue
            score = 0
            if filters.search:
                score = _text_hits(filters.search, user.name, user.bio, *(profile.skills or []))
                if score == 0:
                    continue
            score += len(_lower(filters.categories) & _lower(profile.categories))
            score += len(_lower(filters.skills) & _lower(profile.skills))
            hits.append(ProfessionalHit(
                profile=profile,
                user=user,
                average_rating=float(avg) if avg is not None else None,
                total_reviews=int(count or 0),
                score=score,
            ))
        return hits

    @staticmethod
    def rank_professionals(hits: List[ProfessionalHit], sort_by: str) -> List[ProfessionalHit]:
        ranked = list(hits)
        _sort_newest_first(ranked, lambda h: h.profile.created_at)
        match sort_by:
            case "rate_low":
                ranked.sort(key=lambda h: (_nulls_last(h.profile.hourly_rate), _nulls_last(h.profile.daily_rate)))
            case "rate_high":
                ranked.sort(
                    key=lambda h: (_nulls_last(h.profile.hourly_rate, True), _nulls_last(h.profile.daily_rate, True)),
                    reverse=True,
                )
            case "rating":
                ranked.sort(key=lambda h: (_nulls_last(h.average_rating, True), h.total_reviews), reverse=True)
            case "relevance":
                ranked.sort(key=lambda h: (h.score, _nulls_last(h.average_rating, True)), reverse=True)
        return ranked

    async def search_professionals(
        self, filters: ProfessionalSearchFilters, page: int = 1, limit: int = 12
    ) -> tuple[list[dict], dict]:
        hits = self.rank_professionals(await self._professional_hits(filters), filters.sort_by)
        page_hits, pagination = paginate_list(hits, page, limit)
        return [h.as_dict() for h in page_hits], pagination

    # ── Events ────────────────────────────────────────────────
    async def _event_hits(self, filters: EventSearchFilters) -> List[EventHit]:
        applications = (
            select(EventApplication.event_id, func.count(EventApplication.id).label("n"))
            .group_by(EventApplication.event_id)
            .subquery()
        )
        bookings = (
            select(Booking.event_id, func.count(Booking.id).label("n"))
            .group_by(Booking.event_id)
            .subquery()
        )
        query = (
            select(Event, applications.c.n, bookings.c.n)
            .outerjoin(applications, applications.c.event_id == Event.id)
            .outerjoin(bookings, bookings.c.event_id == Event.id)
            .where(Event.is_public.is_(True), Event.status == EventStatus.PUBLISHED)
        )
        if filters.event_type:
            query = query.where(Event.event_type == EventType(filters.event_type))
        if filters.location:
            query = query.where(Event.location.icontains(filters.location, autoescape=True))
        # Overlap of [start_date, end_date] with [date_from, date_to]
        if filters.date_from:
            query = query.where(Event.end_date >= start_of_day(filters.date_from))
        if filters.date_to:
            query = query.where(Event.start_date <= end_of_day(filters.date_to))
        if filters.budget_min is not None:
            query = query.where(Event.budget >= filters.budget_min)
        if filters.budget_max is not None:
            query = query.where(Event.budget <= filters.budget_max)
        if filters.featured is not None:
            query = query.where(Event.is_featured.is_(filters.featured))
        if filters.upcoming_only:
            query = query.where(Event.start_date >= utcnow())
        if filters.search:
            query = query.where(or_(
                Event.title.icontains(filters.search, autoescape=True),
                Event.description.icontains(filters.search, autoescape=True),
                Event.location.icontains(filters.search, autoescape=True),
            ))

        hits = []
        for event, n_apps, n_bookings in (await self.db.execute(query)).all():
            if filters.required_roles and not _overlaps(filters.required_roles, event.required_roles):
                continue
            score = len(_lower(filters.required_roles) & _lower(event.required_roles))
            if filters.search:
                score += _text_hits(filters.search, event.title, event.description, event.location)
            hits.append(EventHit(event, int(n_apps or 0), int(n_bookings or 0), score))
        return hits

    @staticmethod
    def rank_events(hits: List[EventHit], sort_by: str) -> List[EventHit]:
        ranked = list(hits)
        _sort_newest_first(ranked, lambda h: h.event.created_at)
        match sort_by:
            case "date":
                ranked.sort(key=lambda h: h.event.start_date)
            case "budget":
                ranked.sort(key=lambda h: _nulls_last(h.event.budget, True), reverse=True)
            case "relevance":
                ranked.sort(key=lambda h: (h.event.is_featured, h.score), reverse=True)
        return ranked

    async def search_events(
        self, filters: EventSearchFilters, page: int = 1, limit: int = 12
    ) -> tuple[List[EventHit], dict]:
        hits = self.rank_events(await self._event_hits(filters), filters.sort_by)
        return paginate_list(hits, page, limit)

    # ── Aggregates ────────────────────────────────────────────
    async def _available_profiles(self) -> List[CreativeProfile]:
        result = await self.db.execute(
            select(CreativeProfile)
            .join(User, User.id == CreativeProfile.user_id)
            .where(User.is_active.is_(True))
        )
        return list(result.scalars())

    async def get_popular_categories(self, limit: int = 10) -> list[dict]:
        cache_key = f"search:popular_categories:{limit}"
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        counts = Counter(c for p in await self._available_profiles() for c in (p.categories or []))
        popular = [{"category": c, "count": n} for c, n in counts.most_common(limit)]
        await self.cache.set(cache_key, popular, ttl=600)
        return popular

    async def get_trending_skills(self, limit: int = 10) -> list[dict]:
        cache_key = f"search:trending_skills:{limit}"
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        counts = Counter(s for p in await self._available_profiles() for s in (p.skills or []))
        trending = [{"skill": s, "count": n} for s, n in counts.most_common(limit)]
        await self.cache.set(cache_key, trending, ttl=600)
        return trending

    async def get_search_facets(self, filters: ProfessionalSearchFilters) -> dict:
        """Per-value counts over the professionals matching the current filters."""
        hits = await self._professional_hits(filters)
        categories: Counter = Counter()
        skills: Counter = Counter()
        locations: Counter = Counter()
        for h in hits:
            categories.update(h.profile.categories or [])
            skills.update(h.profile.skills or [])
            if h.user.location:
                locations[h.user.location] += 1

        def rate_stats(values: List[float]) -> dict:
            if not values:
                return {"min": None, "max": None, "avg": None}
            return {"min": min(values), "max": max(values), "avg": round(sum(values) / len(values), 2)}

        return {
            "total": len(hits),
            "categories": [{"value": k, "count": n} for k, n in categories.most_common()],
            "skills": [{"value": k, "count": n} for k, n in skills.most_common(20)],
            "locations": [{"value": k, "count": n} for k, n in locations.most_common(20)],
            "availability": {
                "available": sum(1 for h in hits if h.profile.is_available),
                "unavailable": sum(1 for h in hits if not h.profile.is_available),
            },
            "hourlyRate": rate_stats([h.profile.hourly_rate for h in hits if h.profile.hourly_rate is not None]),
            "dailyRate": rate_stats([h.profile.daily_rate for h in hits if h.profile.daily_rate is not None]),
        }

    async def get_search_suggestions(self, query: str, limit: int = 10) -> list[dict]:
        """
        Autocomplete entries typed professional/event/skill/location.
        Score: +1 for a substring match, +1 more when it is a prefix match.
        """
        q = query.strip().lower()
        if not q:
            return []

        def score(value: str) -> int:
            value = value.lower()
            return (q in value) + value.startswith(q)

        suggestions: dict[tuple[str, str], dict] = {}

        def add(type_: str, value: Optional[str], id_: Optional[uuid.UUID] = None) -> None:
            if not value:
                return
            s = score(value)
            key = (type_, value.lower())
            if s and (key not in suggestions or suggestions[key]["score"] < s):
                suggestions[key] = {"type": type_, "value": value, "id": id_, "score": s}

        users = await self.db.execute(
            select(User).where(
                User.role == UserRole.CREATIVE_PROFESSIONAL,
                User.is_active.is_(True),
                or_(User.name.icontains(q, autoescape=True), User.location.icontains(q, autoescape=True)),
            ).limit(50)
        )
        for user in users.scalars():
            add("professional", user.name, user.id)
            add("location", user.location)

        events = await self.db.execute(
            select(Event).where(
                Event.is_public.is_(True),
                Event.status == EventStatus.PUBLISHED,
                or_(Event.title.icontains(q, autoescape=True), Event.location.icontains(q, autoescape=True)),
            ).limit(50)
        )
        for event in events.scalars():
            add("event", event.title, event.id)
            add("location", event.location)

        for profile in await self._available_profiles():
            for skill in profile.skills or []:
                add("skill", skill)

        ranked = sorted(suggestions.values(), key=lambda s: (-s["score"], s["value"].lower()))
        return ranked[:limit]

    async def get_suggested_professionals(self, user_id: uuid.UUID, limit: int = 6) -> list[dict]:
        """
        Available professionals the user has not booked yet, best rated first;
        ties go to those matching the roles/locations of the user's own events.
        """
        booked = select(Booking.professional_id).where(Booking.planner_id == user_id)
        own_events = (await self.db.execute(select(Event).where(Event.creator_id == user_id))).scalars().all()
        wanted_roles = _lower(r for e in own_events for r in (e.required_roles or []))
        wanted_locations = {e.location.lower() for e in own_events if e.location}

        hits = await self._professional_hits(ProfessionalSearchFilters(available=True))
        booked_ids = set((await self.db.execute(booked)).scalars())
        candidates = [h for h in hits if h.user.id not in booked_ids and h.user.id != user_id]

        for h in candidates:
            h.score = len(wanted_roles & _lower(h.profile.categories))
            if h.user.location and h.user.location.lower() in wanted_locations:
                h.score += 1

        _sort_newest_first(candidates, lambda h: h.profile.created_at)
        candidates.sort(key=lambda h: (_nulls_last(h.average_rating, True), h.score), reverse=True)
        return [h.as_dict() for h in candidates[:limit]]
