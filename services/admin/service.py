"""
services/admin/service.py
User moderation, event featuring and the audit trail.

Every mutation appends an AdminAuditLog row in the same transaction
as the change it records.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from services.analytics.service import AnalyticsService, DateRange
from shared.models.models import (
    ACTIVE_BOOKING_STATUSES,
    AdminAuditLog,
    Booking,
    Event,
    EventStatus,
    User,
    UserRole,
)
from shared.utils.exceptions import AuthorizationError, NotFoundError
from shared.utils.pagination import build_pagination, offset_for

logger = logging.getLogger(__name__)


class AdminService:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _log(
        self,
        admin: User,
        action: str,
        target_type: str,
        target_id,
        details: Optional[dict] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        """Append an immutable record to AdminAuditLog."""
        self.db.add(AdminAuditLog(
            id=uuid.uuid4(),
            admin_id=admin.id,
            action=action,
            target_type=target_type,
            target_id=str(target_id) if target_id is not None else None,
            details=details or {},
            ip_address=ip_address,
        ))

    async def _page(self, query, page: int, limit: int):
        total = await self.db.scalar(select(func.count()).select_from(query.subquery())) or 0
        result = await self.db.execute(query.offset(offset_for(page, limit)).limit(limit))
        return list(result.scalars()), build_pagination(page, limit, total)

    # ── Dashboard ─────────────────────────────────────────────
    async def get_dashboard_stats(self) -> dict:
        stats = await AnalyticsService(self.db).get_platform_statistics(DateRange.resolve())
        stats["pending"] = {
            "inactiveUsers": await self.db.scalar(
                select(func.count(User.id)).where(User.is_active.is_(False))
            ) or 0,
            "draftEvents": await self.db.scalar(
                select(func.count(Event.id)).where(Event.status == EventStatus.DRAFT)
            ) or 0,
            "activeBookings": await self.db.scalar(
                select(func.count(Booking.id)).where(Booking.status.in_(ACTIVE_BOOKING_STATUSES))
            ) or 0,
        }
        return stats

    # ── Users ─────────────────────────────────────────────────
    async def list_users(
        self,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ):
        query = select(User)
        if role:
            query = query.where(User.role == UserRole(role))
        if is_active is not None:
            query = query.where(User.is_active.is_(is_active))
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(or_(
                func.lower(User.name).like(pattern),
                func.lower(User.email).like(pattern),
                func.lower(User.username).like(pattern),
            ))
        return await self._page(query.order_by(User.created_at.desc()), page, limit)

    async def set_user_status(
        self,
        admin: User,
        user_id: uuid.UUID,
        is_active: bool,
        reason: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if user.role == UserRole.ADMIN:
            raise AuthorizationError("Cannot modify admin accounts")

        previous = user.is_active
        user.is_active = is_active
        self._log(
            admin,
            "USER_ACTIVATED" if is_active else "USER_DEACTIVATED",
            "user",
            user.id,
            {"previous": previous, "reason": reason},
            ip_address,
        )
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"Admin {admin.id} set user {user.id} active={is_active}")
        return user

    # ── Events ────────────────────────────────────────────────
    async def list_events(
        self,
        status: Optional[str] = None,
        featured: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ):
        query = select(Event)
        if status:
            query = query.where(Event.status == EventStatus(status))
        if featured is not None:
            query = query.where(Event.is_featured.is_(featured))
        if search:
            query = query.where(func.lower(Event.title).like(f"%{search.lower()}%"))
        return await self._page(query.order_by(Event.created_at.desc()), page, limit)

    async def set_event_featured(
        self,
        admin: User,
        event_id: uuid.UUID,
        is_featured: bool,
        ip_address: Optional[str] = None,
    ) -> Event:
        event = await self.db.get(Event, event_id)
        if event is None:
            raise NotFoundError("Event not found")
        event.is_featured = is_featured
        self._log(admin, "EVENT_FEATURED" if is_featured else "EVENT_UNFEATURED", "event", event.id, None, ip_address)
        await self.db.commit()
        await self.db.refresh(event)
        return event

    # ── Audit ─────────────────────────────────────────────────
    async def get_audit_log(
        self,
        action: Optional[str] = None,
        target_type: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ):
        query = select(AdminAuditLog)
        if action:
            query = query.where(AdminAuditLog.action == action)
        if target_type:
            query = query.where(AdminAuditLog.target_type == target_type)
        return await self._page(query.order_by(AdminAuditLog.created_at.desc()), page, limit)
