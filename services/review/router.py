"""
services/review/router.py
Rating and review management.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.notification.service import NotificationService
from services.realtime.dependencies import get_realtime
from services.review.service import ReviewService
from shared.middleware.auth import get_current_user
from shared.middleware.rate_limit import RateLimit
from shared.models.models import Review, User
from shared.schemas.schemas import ReviewCreateRequest, ReviewResponse, ReviewUpdateRequest
from shared.utils.pagination import ok

router = APIRouter(prefix="/reviews", tags=["Reviews"])


def get_review_service(db: AsyncSession = Depends(get_db), realtime=Depends(get_realtime)) -> ReviewService:
    return ReviewService(db, NotificationService(db, realtime))


def _dump(review: Review) -> dict:
    return ReviewResponse.model_validate(review).model_dump(by_alias=True)


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(RateLimit("review"))])
async def create_review(
    data: ReviewCreateRequest,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    """Review the other participant of a completed booking."""
    review = await service.create_review(current_user, data)
    return ok(_dump(review), "Review submitted")


@router.get("")
async def list_reviews(
    reviewee_id: Optional[UUID] = Query(None, alias="revieweeId"),
    professional_id: Optional[UUID] = Query(None, alias="professionalId"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: ReviewService = Depends(get_review_service),
):
    items, pagination = await service.list_reviews(reviewee_id, professional_id, page, limit)
    return ok([_dump(r) for r in items], pagination=pagination)


@router.get("/{review_id}")
async def get_review(review_id: UUID, service: ReviewService = Depends(get_review_service)):
    return ok(_dump(await service.get_review(review_id)))


@router.put("/{review_id}")
async def update_review(
    review_id: UUID,
    data: ReviewUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    return ok(_dump(await service.update_review(review_id, current_user, data)), "Review updated")


@router.delete("/{review_id}")
async def delete_review(
    review_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    await service.delete_review(review_id, current_user)
    return ok(None, "Review deleted")
