"""
services/portfolio/service.py
Public portfolio pages, view tracking and the owner's project dashboard.

Views are append-only; a viewer IP is counted at most once per user
within PORTFOLIO_VIEW_DEDUP_MINUTES.
"""

import logging
import uuid
from collections import Counter
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from services.review.service import rating_summary
from shared.models.models import PortfolioProject, PortfolioView, User, UserRole
from shared.schemas.schemas import PortfolioProjectCreate, PortfolioProjectUpdate
from shared.utils.dates import days_ago, ensure_utc, utcnow
from shared.utils.exceptions import AuthorizationError, NotFoundError

logger = logging.getLogger(__name__)


class PortfolioService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Lookups ───────────────────────────────────────────────
    async def get_user_by_username(self, username: str) -> User:
        user = await self.db.scalar(select(User).where(func.lower(User.username) == username.lower()))
        if user is None or not user.is_active:
            raise NotFoundError("Portfolio not found")
        return user

    async def get_owned_portfolio(self, username: str, current_user: User) -> User:
        owner = await self.get_user_by_username(username)
        if owner.id != current_user.id:
            raise AuthorizationError("You can only manage your own portfolio")
        return owner

    async def _get_project(self, owner: User, project_id: uuid.UUID) -> PortfolioProject:
        project = await self.db.get(PortfolioProject, project_id)
        if project is None or project.user_id != owner.id:
            raise NotFoundError("Project not found")
        return project

    async def list_projects(self, owner_id: uuid.UUID, public_only: bool = True) -> list[PortfolioProject]:
        query = select(PortfolioProject).where(PortfolioProject.user_id == owner_id)
        if public_only:
            query = query.where(PortfolioProject.is_public.is_(True))
        result = await self.db.execute(
            query.order_by(
                PortfolioProject.is_featured.desc(),
                PortfolioProject.sort_order.asc(),
                PortfolioProject.created_at.desc(),
            )
        )
        return list(result.scalars())

    # ── Public page ───────────────────────────────────────────
    async def get_portfolio(
        self,
        username: str,
        viewer: Optional[User] = None,
        viewer_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        referrer: Optional[str] = None,
    ) -> dict:
        owner = await self.get_user_by_username(username)
        if not owner.is_public or owner.role != UserRole.CREATIVE_PROFESSIONAL:
            raise NotFoundError("Portfolio not found")

        if viewer is None or viewer.id != owner.id:
            await self.record_view(owner.id, viewer_ip, user_agent, referrer)

        average, total = await rating_summary(self.db, owner.id)
        return {
            "user": owner,
            "creative_profile": owner.creative_profile,
            "projects": await self.list_projects(owner.id),
            "average_rating": average,
            "total_reviews": total,
        }

    async def record_view(
        self,
        user_id: uuid.UUID,
        viewer_ip: Optional[str],
        user_agent: Optional[str] = None,
        referrer: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Append a view unless the same IP viewed within the dedup window. Returns True if recorded."""
        now = now or utcnow()
        if viewer_ip:
            since = now - timedelta(minutes=settings.PORTFOLIO_VIEW_DEDUP_MINUTES)
            recent = await self.db.scalar(
                select(PortfolioView.id).where(
                    PortfolioView.user_id == user_id,
                    PortfolioView.viewer_ip == viewer_ip,
                    PortfolioView.viewed_at >= since,
                ).limit(1)
            )
            if recent:
                return False

        self.db.add(PortfolioView(
            id=uuid.uuid4(),
            user_id=user_id,
            viewer_ip=viewer_ip,
            user_agent=(user_agent or "")[:500] or None,
            referrer=(referrer or "")[:500] or None,
            viewed_at=now,
        ))
        await self.db.commit()
        return True

    # ── Owner dashboard ───────────────────────────────────────
    async def get_stats(self, owner: User, now: Optional[datetime] = None) -> dict:
        now = now or utcnow()
        window_start = days_ago(settings.PORTFOLIO_RECENT_VIEWS_DAYS, now)

        total_projects = await self.db.scalar(
            select(func.count(PortfolioProject.id)).where(PortfolioProject.user_id == owner.id)
        ) or 0
        total_views = await self.db.scalar(
            select(func.count(PortfolioView.id)).where(PortfolioView.user_id == owner.id)
        ) or 0
        recent = (await self.db.execute(
            select(PortfolioView.viewed_at).where(
                PortfolioView.user_id == owner.id,
                PortfolioView.viewed_at >= window_start,
                PortfolioView.viewed_at <= now,
            )
        )).scalars().all()

        per_day = Counter(ensure_utc(v).date() for v in recent)
        history = []
        for offset in range(settings.PORTFOLIO_RECENT_VIEWS_DAYS, -1, -1):
            day = (now - timedelta(days=offset)).date()
            history.append({"date": day.isoformat(), "views": per_day.get(day, 0)})

        return {
            "totalProjects": total_projects,
            "totalViews": total_views,
            "recentViews": len(recent),
            "recentViewsDays": settings.PORTFOLIO_RECENT_VIEWS_DAYS,
            "viewsHistory": history,
        }

    async def create_project(self, owner: User, data: PortfolioProjectCreate) -> PortfolioProject:
        project = PortfolioProject(id=uuid.uuid4(), user_id=owner.id, **data.model_dump())
        self.db.add(project)
        await self.db.commit()
        await self.db.refresh(project)
        return project

    async def update_project(
        self, owner: User, project_id: uuid.UUID, data: PortfolioProjectUpdate
    ) -> PortfolioProject:
        project = await self._get_project(owner, project_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(project, field, value)
        await self.db.commit()
        await self.db.refresh(project)
        return project

    async def delete_project(self, owner: User, project_id: uuid.UUID) -> None:
        project = await self._get_project(owner, project_id)
        await self.db.delete(project)
        await self.db.commit()
