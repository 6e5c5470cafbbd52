"""
services/review/service.py
Reviews between booking participants. A review needs a COMPLETED
booking, and each participant may review a booking once.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from services.notification.service import NotificationService
from shared.models.models import Booking, BookingStatus, CreativeProfile, Review, User, UserRole
from shared.schemas.schemas import ReviewCreateRequest, ReviewUpdateRequest
from shared.utils.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from shared.utils.pagination import build_pagination, offset_for

logger = logging.getLogger(__name__)


async def rating_summary(db: AsyncSession, user_id: uuid.UUID) -> tuple[float, int]:
    """(average rounded to 1 decimal, count) over public reviews of user_id."""
    avg, count = (await db.execute(
        select(func.avg(Review.rating), func.count(Review.id))
        .where(Review.reviewee_id == user_id, Review.is_public.is_(True))
    )).one()
    return (round(float(avg), 1) if avg is not None else 0.0), count or 0


class ReviewService:
    def __init__(self, db: AsyncSession, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    async def _get_or_404(self, review_id: uuid.UUID) -> Review:
        review = await self.db.get(Review, review_id)
        if review is None:
            raise NotFoundError("Review not found")
        return review

    async def create_review(self, user: User, data: ReviewCreateRequest) -> Review:
        booking = await self.db.get(Booking, data.booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        if user.id not in (booking.planner_id, booking.professional_id):
            raise AuthorizationError("You can only review your own bookings")
        if booking.status != BookingStatus.COMPLETED:
            raise ValidationError("Booking must be completed before reviewing")

        existing = await self.db.scalar(
            select(Review.id).where(Review.booking_id == booking.id, Review.reviewer_id == user.id)
        )
        if existing:
            raise ConflictError("You have already reviewed this booking")

        reviewee_id = booking.professional_id if user.id == booking.planner_id else booking.planner_id
        review = Review(
            id=uuid.uuid4(),
            booking_id=booking.id,
            reviewer_id=user.id,
            reviewee_id=reviewee_id,
            rating=data.rating,
            comment=data.comment,
            communication=data.communication,
            professionalism=data.professionalism,
            quality=data.quality,
            is_public=True,
        )
        self.db.add(review)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("You have already reviewed this booking")

        await self.notifications.send_review_notification(
            reviewee_id=reviewee_id,
            reviewer_name=user.name,
            rating=data.rating,
            review_id=review.id,
        )
        await self.db.commit()
        await self.db.refresh(review)
        await self.notifications.publish_pending()
        return review

    async def list_reviews(
        self,
        reviewee_id: Optional[uuid.UUID] = None,
        professional_id: Optional[uuid.UUID] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Review], dict]:
        """professional_id is a creative profile id; reviewee_id a user id."""
        query = select(Review).where(Review.is_public.is_(True))
        if reviewee_id:
            query = query.where(Review.reviewee_id == reviewee_id)
        if professional_id:
            query = query.where(
                Review.reviewee_id == select(CreativeProfile.user_id)
                .where(CreativeProfile.id == professional_id)
                .scalar_subquery()
            )
        total = await self.db.scalar(select(func.count()).select_from(query.subquery())) or 0
        result = await self.db.execute(
            query.order_by(Review.created_at.desc(), Review.id.desc())
            .offset(offset_for(page, limit))
            .limit(limit)
        )
        return list(result.scalars()), build_pagination(page, limit, total)

    async def get_review(self, review_id: uuid.UUID) -> Review:
        return await self._get_or_404(review_id)

    async def update_review(self, review_id: uuid.UUID, user: User, data: ReviewUpdateRequest) -> Review:
        review = await self._get_or_404(review_id)
        if review.reviewer_id != user.id:
            raise AuthorizationError("You can only edit your own reviews")
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(review, field, value)
        await self.db.commit()
        await self.db.refresh(review)
        return review

    async def delete_review(self, review_id: uuid.UUID, user: User) -> None:
        review = await self._get_or_404(review_id)
        if review.reviewer_id != user.id and user.role != UserRole.ADMIN:
            raise AuthorizationError("You can only delete your own reviews")
        await self.db.delete(review)
        await self.db.commit()
        logger.info(f"Review {review_id} deleted by {user.id}")
