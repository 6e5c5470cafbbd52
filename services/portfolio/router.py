"""
services/portfolio/router.py
Public portfolio pages and the owner's project dashboard.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.portfolio.service import PortfolioService
from shared.middleware.auth import get_current_user, get_optional_user
from shared.middleware.rate_limit import client_key
from shared.models.models import User
from shared.schemas.schemas import (
    CreativeProfileResponse,
    PortfolioProjectCreate,
    PortfolioProjectResponse,
    PortfolioProjectUpdate,
    UserSummary,
)
from shared.utils.pagination import ok

router = APIRouter(prefix="/portfolio", tags=["Portfolio"])


def _project(project) -> dict:
    return PortfolioProjectResponse.model_validate(project).model_dump(by_alias=True)


@router.get("/{username}")
async def get_portfolio(
    username: str,
    request: Request,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Public portfolio. Each call records a (deduplicated) view for analytics."""
    portfolio = await PortfolioService(db).get_portfolio(
        username,
        viewer=current_user,
        viewer_ip=client_key(request),
        user_agent=request.headers.get("User-Agent"),
        referrer=request.headers.get("Referer"),
    )
    owner = portfolio["user"]
    profile = portfolio["creative_profile"]
    return ok({
        "user": {
            **UserSummary.model_validate(owner).model_dump(by_alias=True),
            "bio": owner.bio,
            "location": owner.location,
        },
        "profile": CreativeProfileResponse.model_validate(profile).model_dump(by_alias=True) if profile else None,
        "projects": [_project(p) for p in portfolio["projects"]],
        "averageRating": portfolio["average_rating"],
        "totalReviews": portfolio["total_reviews"],
    })


# ── Owner dashboard ───────────────────────────────────────────

@router.get("/{username}/dashboard/stats")
async def portfolio_stats(
    username: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = PortfolioService(db)
    owner = await service.get_owned_portfolio(username, current_user)
    return ok(await service.get_stats(owner))


@router.get("/{username}/dashboard/projects")
async def list_projects(
    username: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = PortfolioService(db)
    owner = await service.get_owned_portfolio(username, current_user)
    return ok([_project(p) for p in await service.list_projects(owner.id, public_only=False)])


@router.post("/{username}/dashboard/projects", status_code=status.HTTP_201_CREATED)
async def create_project(
    username: str,
    data: PortfolioProjectCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = PortfolioService(db)
    owner = await service.get_owned_portfolio(username, current_user)
    return ok(_project(await service.create_project(owner, data)), "Project created")


@router.put("/{username}/dashboard/projects/{project_id}")
async def update_project(
    username: str,
    project_id: UUID,
    data: PortfolioProjectUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = PortfolioService(db)
    owner = await service.get_owned_portfolio(username, current_user)
    return ok(_project(await service.update_project(owner, project_id, data)), "Project updated")


@router.delete("/{username}/dashboard/projects/{project_id}")
async def delete_project(
    username: str,
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = PortfolioService(db)
    owner = await service.get_owned_portfolio(username, current_user)
    await service.delete_project(owner, project_id)
    return ok(None, "Project deleted")
