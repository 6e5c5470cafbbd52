"""
services/saved/service.py
A planner's bookmarked creative professionals.
"""

import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import CreativeProfile, EventPlannerProfile, SavedProfessional, User
from shared.utils.exceptions import ConflictError, NotFoundError, ValidationError
from shared.utils.pagination import build_pagination, offset_for


def planner_profile_of(user: User) -> EventPlannerProfile:
    if user.planner_profile is None:
        raise ValidationError("Complete your planner profile first")
    return user.planner_profile


class SavedProfessionalService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def save(self, user: User, professional_id: uuid.UUID) -> SavedProfessional:
        planner = planner_profile_of(user)
        professional = await self.db.get(CreativeProfile, professional_id)
        if professional is None or not professional.user.is_active:
            raise NotFoundError("Professional not found")

        existing = await self.db.scalar(
            select(SavedProfessional.id).where(
                SavedProfessional.planner_profile_id == planner.id,
                SavedProfessional.professional_id == professional_id,
            )
        )
        if existing:
            raise ConflictError("Professional already saved")

        saved = SavedProfessional(id=uuid.uuid4(), planner_profile_id=planner.id, professional_id=professional_id)
        self.db.add(saved)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Professional already saved")
        await self.db.refresh(saved)
        return saved

    async def unsave(self, user: User, professional_id: uuid.UUID) -> None:
        planner = planner_profile_of(user)
        result = await self.db.execute(
            delete(SavedProfessional).where(
                SavedProfessional.planner_profile_id == planner.id,
                SavedProfessional.professional_id == professional_id,
            )
        )
        if not result.rowcount:
            raise NotFoundError("Professional is not in your saved list")
        await self.db.commit()

    async def list_saved(self, user: User, page: int = 1, limit: int = 10) -> tuple[list[SavedProfessional], dict]:
        planner = planner_profile_of(user)
        query = select(SavedProfessional).where(SavedProfessional.planner_profile_id == planner.id)
        total = await self.db.scalar(select(func.count()).select_from(query.subquery())) or 0
        result = await self.db.execute(
            query.order_by(SavedProfessional.created_at.desc())
            .offset(offset_for(page, limit))
            .limit(limit)
        )
        return list(result.scalars()), build_pagination(page, limit, total)

    async def saved_ids(self, user: User) -> list[uuid.UUID]:
        planner = planner_profile_of(user)
        result = await self.db.execute(
            select(SavedProfessional.professional_id).where(SavedProfessional.planner_profile_id == planner.id)
        )
        return list(result.scalars())
