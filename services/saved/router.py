"""
services/saved/router.py
Planner bookmarks of creative professionals.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.saved.service import SavedProfessionalService
from shared.middleware.auth import require_planner
from shared.models.models import SavedProfessional, User
from shared.schemas.schemas import ApplicantResponse
from shared.utils.pagination import ok

router = APIRouter(prefix="/saved-professionals", tags=["Saved Professionals"])


def _dump(saved: SavedProfessional) -> dict:
    return {
        "id": saved.id,
        "savedAt": saved.created_at,
        "professional": ApplicantResponse.model_validate(saved.professional).model_dump(by_alias=True),
    }


@router.get("")
async def list_saved(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(require_planner),
    db: AsyncSession = Depends(get_db),
):
    items, pagination = await SavedProfessionalService(db).list_saved(current_user, page, limit)
    return ok([_dump(s) for s in items], pagination=pagination)


@router.get("/ids")
async def saved_ids(
    current_user: User = Depends(require_planner),
    db: AsyncSession = Depends(get_db),
):
    return ok(await SavedProfessionalService(db).saved_ids(current_user))


@router.post("/{professional_id}", status_code=status.HTTP_201_CREATED)
async def save_professional(
    professional_id: UUID,
    current_user: User = Depends(require_planner),
    db: AsyncSession = Depends(get_db),
):
    saved = await SavedProfessionalService(db).save(current_user, professional_id)
    return ok(_dump(saved), "Professional saved")


@router.delete("/{professional_id}")
async def unsave_professional(
    professional_id: UUID,
    current_user: User = Depends(require_planner),
    db: AsyncSession = Depends(get_db),
):
    await SavedProfessionalService(db).unsave(current_user, professional_id)
    return ok(None, "Professional removed from saved list")
