"""
shared/models/models.py
All SQLAlchemy ORM models for the CollabBridge marketplace.
UUID primary keys throughout; JSON columns use JSONB on PostgreSQL
and plain JSON elsewhere so the same metadata runs under SQLite in tests.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from config.database import Base


JSONType = JSON().with_variant(JSONB(astext_type=Text()), "postgresql")


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp for Python-side defaults."""
    return datetime.now(timezone.utc)


# ── Enumerations ──────────────────────────────────────────────

class UserRole(str, PyEnum):
    ADMIN = "ADMIN"
    EVENT_PLANNER = "EVENT_PLANNER"
    CREATIVE_PROFESSIONAL = "CREATIVE_PROFESSIONAL"


class ProfessionalCategory(str, PyEnum):
    PHOTOGRAPHY = "PHOTOGRAPHY"
    VIDEOGRAPHY = "VIDEOGRAPHY"
    SOUND = "SOUND"
    LIGHTING = "LIGHTING"
    MUSIC = "MUSIC"
    DJ = "DJ"
    DECORATION = "DECORATION"
    CATERING = "CATERING"
    PLANNING = "PLANNING"
    MAKEUP = "MAKEUP"
    OTHER = "OTHER"


class EventType(str, PyEnum):
    WEDDING = "WEDDING"
    CORPORATE = "CORPORATE"
    BIRTHDAY = "BIRTHDAY"
    CONCERT = "CONCERT"
    CONFERENCE = "CONFERENCE"
    OTHER = "OTHER"


class EventStatus(str, PyEnum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ApplicationStatus(str, PyEnum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class BookingStatus(str, PyEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"        # accepted by the professional
    REJECTED = "REJECTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


ACTIVE_BOOKING_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.IN_PROGRESS,
)


class MessageType(str, PyEnum):
    TEXT = "TEXT"
    IMAGE = "IMAGE"
    FILE = "FILE"
    BOOKING_REQUEST = "BOOKING_REQUEST"


class NotificationType(str, PyEnum):
    BOOKING_REQUEST = "BOOKING_REQUEST"
    BOOKING_UPDATE = "BOOKING_UPDATE"
    APPLICATION_UPDATE = "APPLICATION_UPDATE"
    EVENT_UPDATE = "EVENT_UPDATE"
    EVENT_REMINDER = "EVENT_REMINDER"
    MESSAGE_RECEIVED = "MESSAGE_RECEIVED"
    REVIEW_RECEIVED = "REVIEW_RECEIVED"
    CONTRACT_UPDATE = "CONTRACT_UPDATE"
    SYSTEM = "SYSTEM"


class CalendarEventType(str, PyEnum):
    BOOKING = "BOOKING"
    EVENT = "EVENT"
    MEETING = "MEETING"
    DEADLINE = "DEADLINE"
    PERSONAL = "PERSONAL"


class CalendarEventStatus(str, PyEnum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ContractType(str, PyEnum):
    SERVICE = "SERVICE"
    EMPLOYMENT = "EMPLOYMENT"
    NDA = "NDA"
    VENDOR = "VENDOR"
    FREELANCE = "FREELANCE"
    OTHER = "OTHER"


class ContractStatus(str, PyEnum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    UNDER_REVIEW = "UNDER_REVIEW"
    PENDING_SIGNATURE = "PENDING_SIGNATURE"
    SIGNED = "SIGNED"
    EXECUTED = "EXECUTED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


# Contracts in these states lapse once expires_at passes
OPEN_CONTRACT_STATUSES = (
    ContractStatus.SENT,
    ContractStatus.UNDER_REVIEW,
    ContractStatus.PENDING_SIGNATURE,
)


class NotificationPriority(str, PyEnum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"


class DeliveryStatus(str, PyEnum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


# ── Mixins ────────────────────────────────────────────────────

class TimestampMixin:
    """Adds created_at and updated_at to any model."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )


# ── Users & Profiles ──────────────────────────────────────────

class User(TimestampMixin, Base):
    """
    Core account. Created on first authentication (Firebase or
    email/password); username is set during onboarding.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, unique=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    firebase_uid: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, unique=True)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    avatar: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    fcm_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # Push notification token

    planner_profile: Mapped[Optional["EventPlannerProfile"]] = relationship(
        back_populates="user", uselist=False, lazy="selectin"
    )
    creative_profile: Mapped[Optional["CreativeProfile"]] = relationship(
        back_populates="user", uselist=False, lazy="selectin"
    )

    __table_args__ = (
        Index("ix_users_role", "role"),
        Index("ix_users_created_at", "created_at"),
    )

    @property
    def onboarded(self) -> bool:
        return self.username is not None

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"


class EventPlannerProfile(TimestampMixin, Base):
    __tablename__ = "event_planner_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    company_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    user: Mapped["User"] = relationship(back_populates="planner_profile", lazy="selectin")


class CreativeProfile(TimestampMixin, Base):
    __tablename__ = "creative_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    categories: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)
    skills: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)
    hourly_rate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    daily_rate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    experience: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    portfolio_links: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)

    user: Mapped["User"] = relationship(back_populates="creative_profile", lazy="selectin")

    __table_args__ = (
        CheckConstraint("hourly_rate IS NULL OR hourly_rate >= 0", name="ck_hourly_rate_positive"),
        Index("ix_creative_profiles_available", "is_available"),
    )


class RefreshToken(Base):
    """Refresh tokens stored for rotation and revocation."""
    __tablename__ = "refresh_tokens"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token_hash: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)

    __table_args__ = (Index("ix_refresh_tokens_user_id", "user_id"),)


# ── Events & Applications ─────────────────────────────────────

class Event(TimestampMixin, Base):
    __tablename__ = "events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    planner_profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("event_planner_profiles.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    event_type: Mapped[EventType] = mapped_column(Enum(EventType), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    budget: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    status: Mapped[EventStatus] = mapped_column(
        Enum(EventStatus), default=EventStatus.DRAFT, nullable=False
    )
    required_roles: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)
    tags: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)
    requirements: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deadline_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    max_applicants: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    creator: Mapped["User"] = relationship(lazy="selectin")

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_event_dates_ordered"),
        Index("ix_events_status_public", "status", "is_public"),
        Index("ix_events_start_date", "start_date"),
        Index("ix_events_creator_id", "creator_id"),
    )


class EventApplication(TimestampMixin, Base):
    """A creative professional's application to an event. One per (event, professional)."""
    __tablename__ = "event_applications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    professional_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("creative_profiles.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus), default=ApplicationStatus.PENDING, nullable=False
    )
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    proposed_rate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    event: Mapped["Event"] = relationship(lazy="selectin")
    professional: Mapped["CreativeProfile"] = relationship(lazy="selectin")

    __table_args__ = (
        UniqueConstraint("event_id", "professional_id", name="uq_application_event_professional"),
        Index("ix_applications_status", "status"),
    )


# ── Bookings & Reviews ────────────────────────────────────────

class Booking(TimestampMixin, Base):
    """Engagement between a planner and a professional for an event."""
    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    planner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    professional_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    rate: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    event: Mapped["Event"] = relationship(lazy="selectin")
    planner: Mapped["User"] = relationship(foreign_keys=[planner_id], lazy="selectin")
    professional: Mapped["User"] = relationship(foreign_keys=[professional_id], lazy="selectin")

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_booking_dates_ordered"),
        CheckConstraint("rate >= 0", name="ck_booking_rate_positive"),
        Index("ix_bookings_planner_id", "planner_id"),
        Index("ix_bookings_professional_id", "professional_id"),
        Index("ix_bookings_status", "status"),
        Index("ix_bookings_start_date", "start_date"),
    )


class Review(TimestampMixin, Base):
    """Rating left by one booking participant for the other."""
    __tablename__ = "reviews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    reviewee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    rating: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    communication: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    professionalism: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    quality: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    reviewer: Mapped["User"] = relationship(foreign_keys=[reviewer_id], lazy="selectin")
    reviewee: Mapped["User"] = relationship(foreign_keys=[reviewee_id], lazy="selectin")

    __table_args__ = (
        UniqueConstraint("booking_id", "reviewer_id", name="uq_review_booking_reviewer"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
        Index("ix_reviews_reviewee_id", "reviewee_id"),
    )


class SavedProfessional(Base):
    """A planner's bookmark of a creative professional."""
    __tablename__ = "saved_professionals"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    planner_profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("event_planner_profiles.id", ondelete="CASCADE"), nullable=False
    )
    professional_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("creative_profiles.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    professional: Mapped["CreativeProfile"] = relationship(lazy="selectin")

    __table_args__ = (
        UniqueConstraint("planner_profile_id", "professional_id", name="uq_saved_professional"),
    )


# ── Messaging ─────────────────────────────────────────────────

class Conversation(TimestampMixin, Base):
    """
    Two-participant thread. The pair is stored ordered
    (participant_a_id < participant_b_id) so the unordered pair is unique.
    """
    __tablename__ = "conversations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    participant_a_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    participant_b_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    last_message_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("participant_a_id", "participant_b_id", name="uq_conversation_pair"),
        Index("ix_conversations_b", "participant_b_id"),
        Index("ix_conversations_last_message_at", "last_message_at"),
    )

    def has_participant(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.participant_a_id, self.participant_b_id)

    def other_participant(self, user_id: uuid.UUID) -> uuid.UUID:
        return self.participant_b_id if user_id == self.participant_a_id else self.participant_a_id


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    recipient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[MessageType] = mapped_column(
        Enum(MessageType), default=MessageType.TEXT, nullable=False
    )
    extra: Mapped[Optional[dict]] = mapped_column("metadata", JSONType, nullable=True)
    client_message_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    sender: Mapped["User"] = relationship(foreign_keys=[sender_id], lazy="selectin")
    recipient: Mapped["User"] = relationship(foreign_keys=[recipient_id], lazy="selectin")

    __table_args__ = (
        UniqueConstraint("sender_id", "client_message_id", name="uq_message_client_id"),
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
        Index("ix_messages_recipient_unread", "recipient_id", "is_read"),
    )


# ── Notifications (each row is also its own delivery outbox record) ──

class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[NotificationType] = mapped_column(Enum(NotificationType), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    extra: Mapped[Optional[dict]] = mapped_column("metadata", JSONType, nullable=True)
    priority: Mapped[NotificationPriority] = mapped_column(
        Enum(NotificationPriority), default=NotificationPriority.NORMAL, nullable=False
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Delivery outbox state
    email_status: Mapped[DeliveryStatus] = mapped_column(
        Enum(DeliveryStatus), default=DeliveryStatus.SKIPPED, nullable=False
    )
    push_status: Mapped[DeliveryStatus] = mapped_column(
        Enum(DeliveryStatus), default=DeliveryStatus.SKIPPED, nullable=False
    )
    delivery_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    user: Mapped["User"] = relationship(lazy="selectin")

    __table_args__ = (
        Index("ix_notifications_user_id_read", "user_id", "is_read"),
        Index("ix_notifications_delivery", "email_status", "push_status"),
    )

    @property
    def has_pending_delivery(self) -> bool:
        return DeliveryStatus.PENDING in (self.email_status, self.push_status)


# ── Portfolio ─────────────────────────────────────────────────

class PortfolioProject(TimestampMixin, Base):
    __tablename__ = "portfolio_projects"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    project_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (Index("ix_portfolio_projects_user_id", "user_id"),)


class PortfolioView(Base):
    """Append-only view record for portfolio analytics."""
    __tablename__ = "portfolio_views"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    viewer_ip: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    referrer: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    viewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (Index("ix_portfolio_views_user_viewed", "user_id", "viewed_at"),)


# ── Calendar ──────────────────────────────────────────────────

class CalendarEvent(TimestampMixin, Base):
    """
    A personal calendar entry. recurrence_rule is {frequency, interval,
    until, count, daysOfWeek}; reminders is [{minutes, method, sentFor}]
    where sentFor is the occurrence start the reminder last fired for.
    """
    __tablename__ = "calendar_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    event_type: Mapped[CalendarEventType] = mapped_column(Enum(CalendarEventType), nullable=False)
    status: Mapped[CalendarEventStatus] = mapped_column(
        Enum(CalendarEventStatus), default=CalendarEventStatus.SCHEDULED, nullable=False
    )
    recurrence_rule: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    color: Mapped[str] = mapped_column(String(7), default="#3b82f6", nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    attendees: Mapped[List[dict]] = mapped_column(JSONType, default=list, nullable=False)
    reminders: Mapped[List[dict]] = mapped_column(JSONType, default=list, nullable=False)
    extra: Mapped[Optional[dict]] = mapped_column("metadata", JSONType, nullable=True)

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_calendar_event_times_ordered"),
        Index("ix_calendar_events_user_start", "user_id", "start_time"),
    )

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_rule is not None


# ── Contracts ─────────────────────────────────────────────────

class Contract(TimestampMixin, Base):
    """Agreement drafted by created_by for a client and/or an assignee."""
    __tablename__ = "contracts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    client_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    assigned_to: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[ContractType] = mapped_column(Enum(ContractType), nullable=False)
    status: Mapped[ContractStatus] = mapped_column(
        Enum(ContractStatus), default=ContractStatus.DRAFT, nullable=False
    )
    client_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    client_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    extra: Mapped[Optional[dict]] = mapped_column("metadata", JSONType, nullable=True)

    creator: Mapped["User"] = relationship(foreign_keys=[created_by], lazy="selectin")
    client: Mapped[Optional["User"]] = relationship(foreign_keys=[client_id], lazy="selectin")
    assignee: Mapped[Optional["User"]] = relationship(foreign_keys=[assigned_to], lazy="selectin")

    __table_args__ = (
        CheckConstraint(
            "start_date IS NULL OR end_date IS NULL OR end_date > start_date",
            name="ck_contract_dates_ordered",
        ),
        CheckConstraint("value IS NULL OR value >= 0", name="ck_contract_value_positive"),
        Index("ix_contracts_created_by", "created_by"),
        Index("ix_contracts_client_id", "client_id"),
        Index("ix_contracts_assigned_to", "assigned_to"),
        Index("ix_contracts_status_expires", "status", "expires_at"),
    )

    @property
    def counterparty_ids(self) -> set[uuid.UUID]:
        return {i for i in (self.client_id, self.assigned_to) if i is not None and i != self.created_by}


# ── Admin ─────────────────────────────────────────────────────

class AdminAuditLog(Base):
    """Immutable log of every admin mutation."""
    __tablename__ = "admin_audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    admin_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    target_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    details: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_admin_audit_admin_id", "admin_id"),
        Index("ix_admin_audit_created_at", "created_at"),
    )
