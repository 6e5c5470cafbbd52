"""
services/admin/router.py
Admin-only endpoints: user moderation, event featuring, platform
stats and the immutable audit log.

ALL mutations are logged to AdminAuditLog before returning.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.admin.service import AdminService
from services.event.service import EventService
from shared.middleware.auth import require_admin
from shared.middleware.rate_limit import RateLimit, client_key
from shared.models.models import EventStatus, User, UserRole
from shared.schemas.schemas import (
    AdminAuditLogResponse,
    AdminFeatureEventRequest,
    AdminUserStatusUpdate,
    UserResponse,
)
from shared.utils.pagination import ok

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(RateLimit("admin")), Depends(require_admin)],
)


def _user(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump(by_alias=True)


@router.get("/dashboard/stats")
async def dashboard_stats(db: AsyncSession = Depends(get_db)):
    return ok(await AdminService(db).get_dashboard_stats())


# ── Users ─────────────────────────────────────────────────────

@router.get("/users")
async def list_users(
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    users, pagination = await AdminService(db).list_users(
        role.value if role else None, is_active, search, page, limit
    )
    return ok([_user(u) for u in users], pagination=pagination)


@router.patch("/users/{user_id}/status")
async def update_user_status(
    user_id: UUID,
    data: AdminUserStatusUpdate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Activate or deactivate a non-admin account."""
    user = await AdminService(db).set_user_status(
        current_user, user_id, data.is_active, data.reason, client_key(request)
    )
    return ok(_user(user), "User activated" if user.is_active else "User deactivated")


# ── Events ────────────────────────────────────────────────────

@router.get("/events")
async def list_events(
    status: Optional[EventStatus] = None,
    featured: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    events, pagination = await AdminService(db).list_events(
        status.value if status else None, featured, search, page, limit
    )
    return ok(await EventService(db).with_counts(events), pagination=pagination)


@router.patch("/events/{event_id}/featured")
async def set_event_featured(
    event_id: UUID,
    data: AdminFeatureEventRequest,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    event = await AdminService(db).set_event_featured(current_user, event_id, data.is_featured, client_key(request))
    payload = (await EventService(db).with_counts([event]))[0]
    return ok(payload, "Event featured" if event.is_featured else "Event unfeatured")


# ── Audit Log ─────────────────────────────────────────────────

@router.get("/audit-log")
async def get_audit_log(
    action: Optional[str] = None,
    target_type: Optional[str] = Query(None, alias="targetType"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    entries, pagination = await AdminService(db).get_audit_log(action, target_type, page, limit)
    return ok(
        [AdminAuditLogResponse.model_validate(e).model_dump(by_alias=True) for e in entries],
        pagination=pagination,
    )
