"""
shared/schemas/schemas.py
All Pydantic v2 request/response schemas for the platform.
JSON is camelCase on the wire; Python attributes stay snake_case.
"""

import re
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from shared.models.models import (
    ApplicationStatus,
    BookingStatus,
    CalendarEventStatus,
    CalendarEventType,
    ContractStatus,
    ContractType,
    EventStatus,
    EventType,
    MessageType,
    NotificationPriority,
    NotificationType,
    ProfessionalCategory,
    UserRole,
)
from shared.utils.dates import ensure_utc

USERNAME_PATTERN = r"^[a-zA-Z0-9_-]+$"


# ── Base ──────────────────────────────────────────────────────

class BaseSchema(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        use_enum_values=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    return ensure_utc(value)


def _upper_tags(values: Optional[List[str]]) -> Optional[List[str]]:
    if values is None:
        return None
    return [v.strip().upper() for v in values if v and v.strip()]


def _not_null(value):
    """Partial updates may omit a required column but not blank it with null."""
    if value is None:
        raise ValueError("may be omitted but not null")
    return value


# ── Auth ──────────────────────────────────────────────────────

class SignupRequest(BaseSchema):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=2, max_length=255)
    role: UserRole
    username: Optional[str] = Field(None, min_length=3, max_length=50, pattern=USERNAME_PATTERN)

    @field_validator("role")
    @classmethod
    def no_self_service_admin(cls, v: UserRole) -> UserRole:
        if v == UserRole.ADMIN:
            raise ValueError("role must be EVENT_PLANNER or CREATIVE_PROFESSIONAL")
        return v


class SigninRequest(BaseSchema):
    email: EmailStr
    password: str = Field(..., min_length=1)


class FirebaseRegisterRequest(BaseSchema):
    id_token: str = Field(..., alias="token", min_length=10)
    name: str = Field(..., min_length=2, max_length=255)
    role: UserRole
    username: Optional[str] = Field(None, min_length=3, max_length=50, pattern=USERNAME_PATTERN)

    @field_validator("role")
    @classmethod
    def no_self_service_admin(cls, v: UserRole) -> UserRole:
        if v == UserRole.ADMIN:
            raise ValueError("role must be EVENT_PLANNER or CREATIVE_PROFESSIONAL")
        return v


class VerifyTokenRequest(BaseSchema):
    id_token: str = Field(..., alias="token", min_length=10)


class RefreshRequest(BaseSchema):
    refresh_token: str


class LogoutRequest(BaseSchema):
    refresh_token: Optional[str] = None


# ── Users & Profiles ──────────────────────────────────────────

class UserSummary(BaseSchema):
    id: uuid.UUID
    name: str
    username: Optional[str] = None
    avatar: Optional[str] = None
    role: UserRole


class PlannerProfileResponse(BaseSchema):
    id: uuid.UUID
    company_name: Optional[str] = None
    website: Optional[str] = None


class CreativeProfileResponse(BaseSchema):
    id: uuid.UUID
    user_id: uuid.UUID
    categories: List[str] = []
    skills: List[str] = []
    hourly_rate: Optional[float] = None
    daily_rate: Optional[float] = None
    is_available: bool
    experience: Optional[str] = None
    portfolio_links: List[str] = []


class UserResponse(BaseSchema):
    id: uuid.UUID
    email: EmailStr
    name: str
    username: Optional[str] = None
    role: UserRole
    is_verified: bool
    is_active: bool
    avatar: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    phone: Optional[str] = None
    created_at: datetime
    planner_profile: Optional[PlannerProfileResponse] = None
    creative_profile: Optional[CreativeProfileResponse] = None


class PublicProfileResponse(BaseSchema):
    id: uuid.UUID
    name: str
    username: Optional[str] = None
    role: UserRole
    avatar: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    created_at: datetime
    creative_profile: Optional[CreativeProfileResponse] = None
    average_rating: float = 0.0
    total_reviews: int = 0


class ProfileUpdateRequest(BaseSchema):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    bio: Optional[str] = Field(None, max_length=2000)
    location: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, pattern=r"^\+?[0-9\s\-()]{7,20}$")
    avatar: Optional[str] = None
    fcm_token: Optional[str] = None
    is_public: Optional[bool] = None
    # Creative professional fields
    categories: Optional[List[ProfessionalCategory]] = None
    skills: Optional[List[str]] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
    daily_rate: Optional[float] = Field(None, ge=0)
    experience: Optional[str] = Field(None, max_length=2000)
    is_available: Optional[bool] = None
    portfolio_links: Optional[List[str]] = None
    # Event planner fields
    company_name: Optional[str] = Field(None, max_length=255)
    website: Optional[str] = Field(None, max_length=500)

    required_fields = field_validator("name", "is_public", "is_available")(_not_null)


class UsernameUpdateRequest(BaseSchema):
    username: str = Field(..., min_length=3, max_length=50, pattern=USERNAME_PATTERN)


class CheckUsernameRequest(BaseSchema):
    username: str = Field(..., min_length=1, max_length=50)


class UsernameStatusResponse(BaseSchema):
    username: Optional[str]
    has_username: bool


class UsernameAvailabilityResponse(BaseSchema):
    username: str
    available: bool
    reason: Optional[str] = None


def username_is_well_formed(username: str) -> bool:
    return 3 <= len(username) <= 50 and re.match(USERNAME_PATTERN, username) is not None


# ── Events ────────────────────────────────────────────────────

class EventCreateRequest(BaseSchema):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10, max_length=5000)
    event_type: EventType
    start_date: datetime
    end_date: datetime
    location: str = Field(..., min_length=2, max_length=255)
    address: Optional[str] = Field(None, max_length=500)
    budget: Optional[float] = Field(None, ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    required_roles: List[str] = []
    tags: List[str] = []
    requirements: Optional[str] = None
    is_public: bool = True
    deadline_date: Optional[datetime] = None
    max_applicants: Optional[int] = Field(None, ge=1)

    utc_dates = field_validator("start_date", "end_date", "deadline_date")(_utc)
    normalize_roles = field_validator("required_roles")(_upper_tags)

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate must be on or after startDate")
        return self


class EventUpdateRequest(BaseSchema):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, min_length=10, max_length=5000)
    event_type: Optional[EventType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location: Optional[str] = Field(None, min_length=2, max_length=255)
    address: Optional[str] = Field(None, max_length=500)
    budget: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    required_roles: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    requirements: Optional[str] = None
    is_public: Optional[bool] = None
    status: Optional[EventStatus] = None
    deadline_date: Optional[datetime] = None
    max_applicants: Optional[int] = Field(None, ge=1)

    utc_dates = field_validator("start_date", "end_date", "deadline_date")(_utc)
    normalize_roles = field_validator("required_roles")(_upper_tags)
    required_fields = field_validator(
        "title", "description", "event_type", "start_date", "end_date", "location",
        "currency", "required_roles", "tags", "is_public", "status",
    )(_not_null)


class EventResponse(BaseSchema):
    id: uuid.UUID
    creator_id: uuid.UUID
    title: str
    description: str
    event_type: EventType
    start_date: datetime
    end_date: datetime
    location: str
    address: Optional[str] = None
    budget: Optional[float] = None
    currency: str
    status: EventStatus
    required_roles: List[str] = []
    tags: List[str] = []
    requirements: Optional[str] = None
    is_public: bool
    is_featured: bool
    deadline_date: Optional[datetime] = None
    max_applicants: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    creator: Optional[UserSummary] = None
    application_count: Optional[int] = None
    booking_count: Optional[int] = None


# ── Applications ──────────────────────────────────────────────

class ApplyRequest(BaseSchema):
    message: Optional[str] = Field(None, max_length=2000)
    proposed_rate: Optional[float] = Field(None, ge=0)


class ApplicationStatusUpdateRequest(BaseSchema):
    status: ApplicationStatus


class ApplicationUpdateRequest(BaseSchema):
    message: Optional[str] = Field(None, max_length=2000)
    proposed_rate: Optional[float] = Field(None, ge=0)


class ApplicantResponse(CreativeProfileResponse):
    user: Optional[UserSummary] = None


class EventSummary(BaseSchema):
    id: uuid.UUID
    title: str
    event_type: EventType
    start_date: datetime
    end_date: datetime
    location: str
    status: EventStatus
    creator_id: uuid.UUID


class ApplicationResponse(BaseSchema):
    id: uuid.UUID
    event_id: uuid.UUID
    professional_id: uuid.UUID
    status: ApplicationStatus
    message: Optional[str] = None
    proposed_rate: Optional[float] = None
    created_at: datetime
    updated_at: datetime
    event: Optional[EventSummary] = None
    professional: Optional[ApplicantResponse] = None


class ApplicationStatsResponse(BaseSchema):
    total: int
    pending: int
    accepted: int
    rejected: int
    acceptance_rate: float


# ── Bookings ──────────────────────────────────────────────────

class BookingCreateRequest(BaseSchema):
    event_id: uuid.UUID
    professional_id: uuid.UUID   # the professional's user id
    start_date: datetime
    end_date: datetime
    rate: float = Field(..., ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    notes: Optional[str] = Field(None, max_length=2000)

    utc_dates = field_validator("start_date", "end_date")(_utc)

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate must be on or after startDate")
        return self


class BookingStatusUpdateRequest(BaseSchema):
    status: BookingStatus
    reason: Optional[str] = Field(None, max_length=1000)


class BookingResponse(BaseSchema):
    id: uuid.UUID
    event_id: uuid.UUID
    planner_id: uuid.UUID
    professional_id: uuid.UUID
    start_date: datetime
    end_date: datetime
    rate: float
    currency: str
    status: BookingStatus
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    event: Optional[EventSummary] = None
    planner: Optional[UserSummary] = None
    professional: Optional[UserSummary] = None


# ── Reviews ───────────────────────────────────────────────────

class ReviewCreateRequest(BaseSchema):
    booking_id: uuid.UUID
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)
    communication: Optional[int] = Field(None, ge=1, le=5)
    professionalism: Optional[int] = Field(None, ge=1, le=5)
    quality: Optional[int] = Field(None, ge=1, le=5)


class ReviewUpdateRequest(BaseSchema):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)
    communication: Optional[int] = Field(None, ge=1, le=5)
    professionalism: Optional[int] = Field(None, ge=1, le=5)
    quality: Optional[int] = Field(None, ge=1, le=5)

    required_fields = field_validator("rating")(_not_null)


class ReviewResponse(BaseSchema):
    id: uuid.UUID
    booking_id: uuid.UUID
    reviewer_id: uuid.UUID
    reviewee_id: uuid.UUID
    rating: int
    comment: Optional[str] = None
    communication: Optional[int] = None
    professionalism: Optional[int] = None
    quality: Optional[int] = None
    created_at: datetime
    reviewer: Optional[UserSummary] = None


# ── Messaging ─────────────────────────────────────────────────

class SendMessageRequest(BaseSchema):
    recipient_id: uuid.UUID
    content: str = Field(..., min_length=1, max_length=5000)
    message_type: MessageType = MessageType.TEXT
    metadata: Optional[Dict[str, Any]] = None
    client_message_id: Optional[str] = Field(None, min_length=1, max_length=64)


class ChatMessageResponse(BaseSchema):
    id: uuid.UUID
    conversation_id: uuid.UUID
    sender_id: uuid.UUID
    recipient_id: uuid.UUID
    content: str
    message_type: MessageType
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="extra")
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime
    sender: Optional[UserSummary] = None
    recipient: Optional[UserSummary] = None


class ConversationResponse(BaseSchema):
    id: uuid.UUID
    other_participant: UserSummary
    last_message: Optional[ChatMessageResponse] = None
    last_message_at: Optional[datetime] = None
    unread_count: int
    created_at: datetime


# ── Notifications ─────────────────────────────────────────────

class NotificationResponse(BaseSchema):
    id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="extra")
    priority: NotificationPriority
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


# ── Search ────────────────────────────────────────────────────

class ProfessionalSearchFilters(BaseSchema):
    categories: List[str] = []
    location: Optional[str] = None
    min_rating: Optional[float] = Field(None, ge=0, le=5)
    max_rate: Optional[float] = Field(None, ge=0)
    min_rate: Optional[float] = Field(None, ge=0)
    available: Optional[bool] = None
    skills: List[str] = []
    search: Optional[str] = None
    sort_by: str = Field("newest", pattern=r"^(rate_low|rate_high|rating|newest|relevance)$")

    normalize_categories = field_validator("categories")(_upper_tags)


class EventSearchFilters(BaseSchema):
    event_type: Optional[EventType] = None
    location: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    budget_min: Optional[float] = Field(None, ge=0)
    budget_max: Optional[float] = Field(None, ge=0)
    required_roles: List[str] = []
    search: Optional[str] = None
    featured: Optional[bool] = None
    upcoming_only: bool = False
    sort_by: str = Field("date", pattern=r"^(date|budget|relevance|newest)$")

    normalize_roles = field_validator("required_roles")(_upper_tags)


class ProfessionalResult(BaseSchema):
    id: uuid.UUID
    user_id: uuid.UUID
    categories: List[str] = []
    skills: List[str] = []
    hourly_rate: Optional[float] = None
    daily_rate: Optional[float] = None
    is_available: bool
    experience: Optional[str] = None
    created_at: datetime
    user: UserSummary
    location: Optional[str] = None
    bio: Optional[str] = None
    average_rating: float
    total_reviews: int


class SuggestionResponse(BaseSchema):
    type: str
    value: str
    id: Optional[uuid.UUID] = None
    score: int


# ── Portfolio ─────────────────────────────────────────────────

class PortfolioProjectCreate(BaseSchema):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    image_url: Optional[str] = None
    project_url: Optional[str] = None
    tags: List[str] = []
    is_public: bool = True
    is_featured: bool = False
    sort_order: int = 0


class PortfolioProjectUpdate(BaseSchema):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    image_url: Optional[str] = None
    project_url: Optional[str] = None
    tags: Optional[List[str]] = None
    is_public: Optional[bool] = None
    is_featured: Optional[bool] = None
    sort_order: Optional[int] = None

    required_fields = field_validator("title", "tags", "is_public", "is_featured", "sort_order")(_not_null)


class PortfolioProjectResponse(PortfolioProjectCreate):
    id: uuid.UUID
    user_id: uuid.UUID
    created_at: datetime
    updated_at: datetime


# ── Uploads ───────────────────────────────────────────────────

class UploadResponse(BaseSchema):
    url: str
    public_id: str
    original_name: Optional[str] = None
    size: int
    format: Optional[str] = None


# ── Calendar ──────────────────────────────────────────────────

class RecurrenceRule(BaseSchema):
    frequency: str = Field(..., pattern=r"^(DAILY|WEEKLY|MONTHLY|YEARLY)$")
    interval: int = Field(1, ge=1, le=365)
    until: Optional[datetime] = None
    count: Optional[int] = Field(None, ge=1, le=1000)
    # 0 = Monday ... 6 = Sunday
    days_of_week: Optional[List[int]] = None

    utc_until = field_validator("until")(_utc)

    @field_validator("frequency", mode="before")
    @classmethod
    def upper_frequency(cls, value):
        return value.upper() if isinstance(value, str) else value

    @field_validator("days_of_week")
    @classmethod
    def valid_weekdays(cls, values: Optional[List[int]]) -> Optional[List[int]]:
        if values is not None and any(not 0 <= d <= 6 for d in values):
            raise ValueError("daysOfWeek entries must be between 0 (Monday) and 6 (Sunday)")
        return sorted(set(values)) if values else values


class Attendee(BaseSchema):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    status: str = Field("INVITED", pattern=r"^(INVITED|ACCEPTED|DECLINED|TENTATIVE)$")


class Reminder(BaseSchema):
    minutes: int = Field(..., ge=1, le=40320)
    method: str = Field("EMAIL", pattern=r"^(EMAIL|PUSH)$")


def _default_reminders() -> List[Reminder]:
    return [Reminder(minutes=30, method="EMAIL")]


class CalendarEventCreateRequest(BaseSchema):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    start_time: datetime
    end_time: datetime
    location: Optional[str] = Field(None, max_length=255)
    event_type: CalendarEventType
    recurrence_rule: Optional[RecurrenceRule] = None
    color: str = Field("#3b82f6", pattern=r"^#[0-9A-Fa-f]{6}$")
    is_public: bool = False
    metadata: Optional[Dict[str, Any]] = None
    attendees: List[Attendee] = []
    reminders: List[Reminder] = Field(default_factory=_default_reminders)

    utc_times = field_validator("start_time", "end_time")(_utc)

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime")
        return self


class CalendarEventUpdateRequest(BaseSchema):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=255)
    event_type: Optional[CalendarEventType] = None
    status: Optional[CalendarEventStatus] = None
    recurrence_rule: Optional[RecurrenceRule] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    is_public: Optional[bool] = None
    metadata: Optional[Dict[str, Any]] = None
    attendees: Optional[List[Attendee]] = None
    reminders: Optional[List[Reminder]] = None

    utc_times = field_validator("start_time", "end_time")(_utc)
    required_fields = field_validator(
        "title", "start_time", "end_time", "event_type", "status", "color", "is_public", "attendees", "reminders",
    )(_not_null)


class CalendarEventResponse(BaseSchema):
    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    location: Optional[str] = None
    event_type: CalendarEventType
    status: CalendarEventStatus
    is_recurring: bool
    recurrence_rule: Optional[Dict[str, Any]] = None
    color: str
    is_public: bool
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="extra")
    attendees: List[Dict[str, Any]] = []
    reminders: List[Dict[str, Any]] = []
    created_at: datetime
    updated_at: datetime


class OccurrenceResponse(BaseSchema):
    event_id: uuid.UUID
    title: str
    event_type: CalendarEventType
    color: str
    start_time: datetime
    end_time: datetime


# ── Contracts ─────────────────────────────────────────────────

class ContractCreateRequest(BaseSchema):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    content: str = Field(..., min_length=1)
    type: ContractType
    client_id: Optional[uuid.UUID] = None
    assigned_to: Optional[uuid.UUID] = None
    client_name: Optional[str] = Field(None, max_length=255)
    client_email: Optional[EmailStr] = None
    value: Optional[float] = Field(None, ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None

    utc_dates = field_validator("start_date", "end_date", "expires_at")(_utc)

    @model_validator(mode="after")
    def end_after_start(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("endDate must be after startDate")
        return self


class ContractUpdateRequest(BaseSchema):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    content: Optional[str] = Field(None, min_length=1)
    type: Optional[ContractType] = None
    client_id: Optional[uuid.UUID] = None
    assigned_to: Optional[uuid.UUID] = None
    client_name: Optional[str] = Field(None, max_length=255)
    client_email: Optional[EmailStr] = None
    value: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None

    utc_dates = field_validator("start_date", "end_date", "expires_at")(_utc)
    required_fields = field_validator("title", "content", "type", "currency")(_not_null)


class ContractStatusUpdateRequest(BaseSchema):
    status: ContractStatus
    reason: Optional[str] = Field(None, max_length=500)


class ContractResponse(BaseSchema):
    id: uuid.UUID
    created_by: uuid.UUID
    client_id: Optional[uuid.UUID] = None
    assigned_to: Optional[uuid.UUID] = None
    title: str
    description: Optional[str] = None
    content: str
    type: ContractType
    status: ContractStatus
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    value: Optional[float] = None
    currency: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    status_reason: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="extra")
    created_at: datetime
    updated_at: datetime
    creator: Optional[UserSummary] = None
    client: Optional[UserSummary] = None
    assignee: Optional[UserSummary] = None


# ── Admin ─────────────────────────────────────────────────────

class AdminUserStatusUpdate(BaseSchema):
    is_active: bool
    reason: Optional[str] = Field(None, max_length=500)


class AdminFeatureEventRequest(BaseSchema):
    is_featured: bool


class AdminAuditLogResponse(BaseSchema):
    id: uuid.UUID
    admin_id: Optional[uuid.UUID] = None
    action: str
    target_type: str
    target_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime
