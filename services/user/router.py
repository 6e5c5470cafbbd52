"""
services/user/router.py
Profile, username onboarding, account and public profile endpoints.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.user.service import UserService
from shared.middleware.auth import get_current_user
from shared.models.models import User
from shared.schemas.schemas import (
    CheckUsernameRequest,
    ProfileUpdateRequest,
    PublicProfileResponse,
    UserResponse,
    UsernameAvailabilityResponse,
    UsernameStatusResponse,
    UsernameUpdateRequest,
)
from shared.utils.pagination import ok

router = APIRouter(prefix="/users", tags=["Users"])


def _dump(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump(by_alias=True)


@router.get("/profile")
async def get_profile(current_user: User = Depends(get_current_user)):
    """Return the currently authenticated user's profile."""
    return ok(_dump(current_user))


@router.put("/profile")
async def update_profile(
    data: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Update profile fields. Only fields present in the body change;
    professional and planner fields apply to the caller's role profile.
    """
    user = await UserService(db).update_profile(current_user, data)
    return ok(_dump(user), "Profile updated successfully")


# ── Username ──────────────────────────────────────────────────

@router.get("/username")
async def get_username(current_user: User = Depends(get_current_user)):
    status = UsernameStatusResponse(username=current_user.username, has_username=current_user.onboarded)
    return ok(status.model_dump(by_alias=True))


@router.put("/username")
async def set_username(
    data: UsernameUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).set_username(current_user, data.username)
    return ok(_dump(user), "Username updated successfully")


@router.post("/check-username")
async def check_username(data: CheckUsernameRequest, db: AsyncSession = Depends(get_db)):
    result = await UserService(db).check_username(data.username)
    return ok(UsernameAvailabilityResponse(**result).model_dump(by_alias=True))


# ── Account ───────────────────────────────────────────────────

@router.delete("/account")
async def delete_account(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await UserService(db).deactivate_account(current_user)
    return ok(None, "Account deactivated")


@router.get("/{user_id}")
async def get_public_profile(user_id: UUID, db: AsyncSession = Depends(get_db)):
    profile = await UserService(db).get_public_profile(user_id)
    return ok(PublicProfileResponse.model_validate(profile).model_dump(by_alias=True))
