"""
services/application/service.py
Applications from creative professionals to published events.

One application per (event, professional): checked before insert and
backed by a unique constraint for concurrent submissions.
Status transitions:
    PENDING  -> ACCEPTED | REJECTED
    ACCEPTED -> REJECTED
    REJECTED -> ACCEPTED
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from services.notification.service import NotificationService
from shared.models.models import (
    ApplicationStatus,
    CreativeProfile,
    Event,
    EventApplication,
    EventStatus,
    User,
    UserRole,
)
from shared.schemas.schemas import ApplicationUpdateRequest, ApplyRequest
from shared.utils.dates import ensure_utc, utcnow
from shared.utils.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from shared.utils.pagination import build_pagination, offset_for

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    ApplicationStatus.PENDING: {ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED},
    ApplicationStatus.ACCEPTED: {ApplicationStatus.REJECTED},
    ApplicationStatus.REJECTED: {ApplicationStatus.ACCEPTED},
}


def creative_profile_of(user: User) -> CreativeProfile:
    if user.creative_profile is None:
        raise ValidationError("Complete your professional profile first")
    return user.creative_profile


class ApplicationService:
    def __init__(self, db: AsyncSession, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    # ── Scope ─────────────────────────────────────────────────
    def _scoped(self, user: User):
        """Applications the user may list: to their events, their own, or all for admins."""
        query = select(EventApplication)
        match user.role:
            case UserRole.EVENT_PLANNER:
                return query.join(Event, Event.id == EventApplication.event_id).where(Event.creator_id == user.id)
            case UserRole.CREATIVE_PROFESSIONAL:
                return query.where(EventApplication.professional_id == creative_profile_of(user).id)
            case UserRole.ADMIN:
                return query

    async def _get_or_404(self, application_id: uuid.UUID) -> EventApplication:
        application = await self.db.get(EventApplication, application_id)
        if application is None:
            raise NotFoundError("Application not found")
        return application

    def _is_applicant(self, application: EventApplication, user: User) -> bool:
        return user.creative_profile is not None and application.professional_id == user.creative_profile.id

    # ── Apply ─────────────────────────────────────────────────
    async def apply(self, event_id: uuid.UUID, user: User, data: ApplyRequest) -> EventApplication:
        profile = creative_profile_of(user)
        event = await self.db.get(Event, event_id)
        if event is None:
            raise NotFoundError("Event not found")
        if event.status != EventStatus.PUBLISHED:
            raise ValidationError("This event is not accepting applications")
        if event.deadline_date and ensure_utc(event.deadline_date) < utcnow():
            raise ValidationError("The application deadline has passed")

        existing = await self.db.scalar(
            select(EventApplication.id).where(
                EventApplication.event_id == event_id,
                EventApplication.professional_id == profile.id,
            )
        )
        if existing:
            raise ConflictError("You have already applied to this event")

        if event.max_applicants:
            count = await self.db.scalar(
                select(func.count(EventApplication.id)).where(EventApplication.event_id == event_id)
            )
            if count >= event.max_applicants:
                raise ValidationError("This event has reached its maximum number of applicants")

        application = EventApplication(
            id=uuid.uuid4(),
            event_id=event_id,
            professional_id=profile.id,
            status=ApplicationStatus.PENDING,
            message=data.message,
            proposed_rate=data.proposed_rate,
        )
        self.db.add(application)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("You have already applied to this event")

        await self.notifications.send_application_notification(
            user_id=event.creator_id,
            title="New Application",
            message=f'{user.name} applied to "{event.title}"',
            metadata={"eventId": str(event.id), "applicationId": str(application.id)},
        )
        await self.db.commit()
        await self.db.refresh(application)
        await self.notifications.publish_pending()
        logger.info(f"Application {application.id} to event {event_id} by {user.id}")
        return application

    # ── Queries ───────────────────────────────────────────────
    async def list_applications(
        self,
        user: User,
        status: Optional[ApplicationStatus] = None,
        event_id: Optional[uuid.UUID] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[EventApplication], dict]:
        query = self._scoped(user)
        if status:
            query = query.where(EventApplication.status == ApplicationStatus(status))
        if event_id:
            query = query.where(EventApplication.event_id == event_id)
        total = await self.db.scalar(select(func.count()).select_from(query.subquery())) or 0
        result = await self.db.execute(
            query.order_by(EventApplication.created_at.desc(), EventApplication.id.desc())
            .offset(offset_for(page, limit))
            .limit(limit)
        )
        return list(result.scalars()), build_pagination(page, limit, total)

    async def get_event_applications(
        self, event_id: uuid.UUID, user: User, status: Optional[ApplicationStatus] = None,
        page: int = 1, limit: int = 10,
    ) -> tuple[list[EventApplication], dict]:
        event = await self.db.get(Event, event_id)
        if event is None:
            raise NotFoundError("Event not found")
        if event.creator_id != user.id and user.role != UserRole.ADMIN:
            raise AuthorizationError("Only the event owner can view its applications")

        query = select(EventApplication).where(EventApplication.event_id == event_id)
        if status:
            query = query.where(EventApplication.status == ApplicationStatus(status))
        total = await self.db.scalar(select(func.count()).select_from(query.subquery())) or 0
        result = await self.db.execute(
            query.order_by(EventApplication.created_at.desc())
            .offset(offset_for(page, limit))
            .limit(limit)
        )
        return list(result.scalars()), build_pagination(page, limit, total)

    async def get_application(self, application_id: uuid.UUID, user: User) -> EventApplication:
        application = await self._get_or_404(application_id)
        if not (
            user.role == UserRole.ADMIN
            or self._is_applicant(application, user)
            or application.event.creator_id == user.id
        ):
            raise AuthorizationError("You cannot view this application")
        return application

    async def get_stats(self, user: User) -> dict:
        scoped = self._scoped(user).subquery()
        rows = await self.db.execute(select(scoped.c.status, func.count()).group_by(scoped.c.status))
        counts = {ApplicationStatus(s): n for s, n in rows.all()}
        total = sum(counts.values())
        accepted = counts.get(ApplicationStatus.ACCEPTED, 0)
        return {
            "total": total,
            "pending": counts.get(ApplicationStatus.PENDING, 0),
            "accepted": accepted,
            "rejected": counts.get(ApplicationStatus.REJECTED, 0),
            "acceptanceRate": round(accepted / total * 100, 2) if total else 0.0,
        }

    # ── Transitions ───────────────────────────────────────────
    async def update_status(
        self, application_id: uuid.UUID, user: User, new_status: ApplicationStatus
    ) -> EventApplication:
        application = await self._get_or_404(application_id)
        event = application.event
        if event.creator_id != user.id:
            raise AuthorizationError("Only the event owner can update application status")

        current, target = ApplicationStatus(application.status), ApplicationStatus(new_status)
        if target not in ALLOWED_TRANSITIONS.get(current, set()):
            raise ValidationError(f"Cannot change application from {current.value} to {target.value}")

        application.status = target
        verdict = "accepted" if target == ApplicationStatus.ACCEPTED else "declined"
        await self.notifications.send_application_notification(
            user_id=application.professional.user_id,
            title=f"Application {verdict.capitalize()}",
            message=f'Your application for "{event.title}" was {verdict}',
            metadata={"eventId": str(event.id), "applicationId": str(application.id), "status": target.value},
        )
        await self.db.commit()
        await self.db.refresh(application)
        await self.notifications.publish_pending()
        return application

    async def update_application(
        self, application_id: uuid.UUID, user: User, data: ApplicationUpdateRequest
    ) -> EventApplication:
        application = await self._get_or_404(application_id)
        if not self._is_applicant(application, user):
            raise AuthorizationError("You can only edit your own applications")
        if application.status != ApplicationStatus.PENDING:
            raise ValidationError("Only pending applications can be edited")
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(application, field, value)
        await self.db.commit()
        await self.db.refresh(application)
        return application

    async def withdraw(self, application_id: uuid.UUID, user: User) -> None:
        application = await self._get_or_404(application_id)
        if not self._is_applicant(application, user):
            raise AuthorizationError("You can only withdraw your own applications")
        if application.status != ApplicationStatus.PENDING:
            raise ValidationError("Only pending applications can be withdrawn")

        event = application.event
        await self.notifications.send_application_notification(
            user_id=event.creator_id,
            title="Application Withdrawn",
            message=f'{user.name} withdrew their application for "{event.title}"',
            metadata={"eventId": str(event.id)},
        )
        await self.db.delete(application)
        await self.db.commit()
        await self.notifications.publish_pending()
