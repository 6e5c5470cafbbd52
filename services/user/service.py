"""
services/user/service.py
Profiles, usernames (onboarding) and account state.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from services.review.service import rating_summary
from shared.models.models import CreativeProfile, EventPlannerProfile, User, UserRole
from shared.schemas.schemas import ProfileUpdateRequest, username_is_well_formed
from shared.utils.exceptions import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

USER_FIELDS = {"name", "bio", "location", "phone", "avatar", "fcm_token", "is_public"}
CREATIVE_FIELDS = {"categories", "skills", "hourly_rate", "daily_rate", "experience", "is_available", "portfolio_links"}
PLANNER_FIELDS = {"company_name", "website"}

RESERVED_USERNAMES = {"admin", "api", "me", "settings", "dashboard", "login", "signup", "support"}


def create_role_profile(db: AsyncSession, user: User) -> None:
    """Attach the profile row matching the user's role."""
    match user.role:
        case UserRole.EVENT_PLANNER:
            user.planner_profile = EventPlannerProfile(id=uuid.uuid4(), user_id=user.id)
            db.add(user.planner_profile)
        case UserRole.CREATIVE_PROFESSIONAL:
            user.creative_profile = CreativeProfile(
                id=uuid.uuid4(), user_id=user.id, categories=[], skills=[], portfolio_links=[], is_available=True
            )
            db.add(user.creative_profile)
        case UserRole.ADMIN:
            pass


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Profile ───────────────────────────────────────────────
    async def update_profile(self, user: User, data: ProfileUpdateRequest) -> User:
        """Apply only the fields present in the request; role fields go to the role profile."""
        updates = data.model_dump(exclude_unset=True)

        for field in USER_FIELDS & updates.keys():
            setattr(user, field, updates[field])

        match user.role:
            case UserRole.CREATIVE_PROFESSIONAL:
                if user.creative_profile is None:
                    create_role_profile(self.db, user)
                for field in CREATIVE_FIELDS & updates.keys():
                    value = updates[field]
                    if field in ("categories", "skills", "portfolio_links") and value is None:
                        value = []
                    setattr(user.creative_profile, field, value)
            case UserRole.EVENT_PLANNER:
                if user.planner_profile is None:
                    create_role_profile(self.db, user)
                for field in PLANNER_FIELDS & updates.keys():
                    setattr(user.planner_profile, field, updates[field])

        await self.db.commit()
        await self.db.refresh(user)
        return user

    # ── Username ──────────────────────────────────────────────
    async def _username_owner(self, username: str) -> Optional[uuid.UUID]:
        return await self.db.scalar(select(User.id).where(func.lower(User.username) == username.lower()))

    async def check_username(self, username: str, current_user_id: Optional[uuid.UUID] = None) -> dict:
        if not username_is_well_formed(username):
            return {
                "username": username,
                "available": False,
                "reason": "Username must be 3-50 characters: letters, numbers, _ or -",
            }
        if username.lower() in RESERVED_USERNAMES:
            return {"username": username, "available": False, "reason": "Username is reserved"}
        owner = await self._username_owner(username)
        if owner is not None and owner != current_user_id:
            return {"username": username, "available": False, "reason": "Username is already taken"}
        return {"username": username, "available": True, "reason": None}

    async def set_username(self, user: User, username: str) -> User:
        status = await self.check_username(username, user.id)
        if not status["available"]:
            raise ConflictError(status["reason"])
        user.username = username
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"User {user.id} set username {username}")
        return user

    # ── Account ───────────────────────────────────────────────
    async def deactivate_account(self, user: User) -> None:
        user.is_active = False
        await self.db.commit()
        logger.info(f"User {user.id} deactivated their account")

    async def get_public_profile(self, user_id: uuid.UUID) -> dict:
        user = await self.db.get(User, user_id)
        if user is None or not user.is_active or not user.is_public:
            raise NotFoundError("User not found")
        average, total = await rating_summary(self.db, user.id)
        return {
            "id": user.id,
            "name": user.name,
            "username": user.username,
            "role": user.role,
            "avatar": user.avatar,
            "bio": user.bio,
            "location": user.location,
            "created_at": user.created_at,
            "creative_profile": user.creative_profile,
            "average_rating": average,
            "total_reviews": total,
        }
