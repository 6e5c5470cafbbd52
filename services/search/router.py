"""
services/search/router.py
Professional and event search, facets, autocomplete and discovery.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import RedisCache, get_redis
from shared.middleware.auth import require_planner
from shared.middleware.rate_limit import RateLimit
from shared.models.models import EventType, User
from shared.schemas.schemas import (
    EventResponse,
    EventSearchFilters,
    ProfessionalResult,
    ProfessionalSearchFilters,
    SuggestionResponse,
)
from shared.utils.pagination import ok
from services.search.service import SearchService

router = APIRouter(prefix="/search", tags=["Search"], dependencies=[Depends(RateLimit("search"))])


def split_csv(value: Optional[str]) -> list[str]:
    """Comma-separated query value -> list."""
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def get_search_service(db: AsyncSession = Depends(get_db), redis=Depends(get_redis)) -> SearchService:
    return SearchService(db, RedisCache(redis))


def professional_filters(
    categories: Optional[str] = Query(None, description="Comma-separated, e.g. PHOTOGRAPHY,DJ"),
    location: Optional[str] = Query(None),
    min_rating: Optional[float] = Query(None, alias="minRating", ge=0, le=5),
    max_rate: Optional[float] = Query(None, alias="maxRate", ge=0),
    min_rate: Optional[float] = Query(None, alias="minRate", ge=0),
    available: Optional[bool] = Query(None),
    skills: Optional[str] = Query(None, description="Comma-separated"),
    search: Optional[str] = Query(None, max_length=200),
    sort_by: str = Query("newest", alias="sortBy", pattern="^(rate_low|rate_high|rating|newest|relevance)$"),
) -> ProfessionalSearchFilters:
    return ProfessionalSearchFilters(
        categories=split_csv(categories),
        location=location,
        min_rating=min_rating,
        max_rate=max_rate,
        min_rate=min_rate,
        available=available,
        skills=split_csv(skills),
        search=search,
        sort_by=sort_by,
    )


# ── Professionals ─────────────────────────────────────────────

@router.get("/professionals")
async def search_professionals(
    filters: ProfessionalSearchFilters = Depends(professional_filters),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    service: SearchService = Depends(get_search_service),
):
    items, pagination = await service.search_professionals(filters, page, limit)
    return ok(
        [ProfessionalResult.model_validate(i).model_dump(by_alias=True) for i in items],
        pagination=pagination,
    )


# ── Events ────────────────────────────────────────────────────

@router.get("/events")
async def search_events(
    event_type: Optional[EventType] = Query(None, alias="eventType"),
    location: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None, alias="dateFrom", description="YYYY-MM-DD"),
    date_to: Optional[date] = Query(None, alias="dateTo", description="YYYY-MM-DD"),
    budget_min: Optional[float] = Query(None, alias="budgetMin", ge=0),
    budget_max: Optional[float] = Query(None, alias="budgetMax", ge=0),
    required_roles: Optional[str] = Query(None, alias="requiredRoles"),
    search: Optional[str] = Query(None, max_length=200),
    featured: Optional[bool] = Query(None),
    upcoming_only: bool = Query(False, alias="upcomingOnly"),
    sort_by: str = Query("date", alias="sortBy", pattern="^(date|budget|relevance|newest)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    service: SearchService = Depends(get_search_service),
):
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
        upcoming_only=upcoming_only,
        sort_by=sort_by,
    )
    hits, pagination = await service.search_events(filters, page, limit)
    data = []
    for hit in hits:
        event = EventResponse.model_validate(hit.event)
        event.application_count = hit.application_count
        event.booking_count = hit.booking_count
        data.append(event.model_dump(by_alias=True))
    return ok(data, pagination=pagination)


# ── Discovery ─────────────────────────────────────────────────

@router.get("/categories")
async def popular_categories(
    limit: int = Query(10, ge=1, le=50),
    service: SearchService = Depends(get_search_service),
):
    return ok(await service.get_popular_categories(limit))


@router.get("/trending")
async def trending_skills(
    limit: int = Query(10, ge=1, le=50),
    service: SearchService = Depends(get_search_service),
):
    return ok(await service.get_trending_skills(limit))


@router.get("/suggestions")
async def search_suggestions(
    q: str = Query(..., min_length=2, description="Autocomplete query"),
    limit: int = Query(10, ge=1, le=25),
    service: SearchService = Depends(get_search_service),
):
    suggestions = await service.get_search_suggestions(q, limit)
    return ok([SuggestionResponse.model_validate(s).model_dump(by_alias=True) for s in suggestions])


@router.get("/facets")
async def search_facets(
    filters: ProfessionalSearchFilters = Depends(professional_filters),
    service: SearchService = Depends(get_search_service),
):
    return ok(await service.get_search_facets(filters))


@router.get("/suggested-professionals")
async def suggested_professionals(
    limit: int = Query(6, ge=1, le=24),
    current_user: User = Depends(require_planner),
    service: SearchService = Depends(get_search_service),
):
    items = await service.get_suggested_professionals(current_user.id, limit)
    return ok([ProfessionalResult.model_validate(i).model_dump(by_alias=True) for i in items])
