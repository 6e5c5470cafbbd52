"""
tests/conftest.py
Shared fixtures: an in-memory SQLite database per test, the ASGI app
wired to it, and one user per role.
"""

import os

os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_URL"] = ""
os.environ["JWT_SECRET_KEY"] = "test-secret"

import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from config.database import Database, get_db
from shared.models.models import (
    CreativeProfile,
    Event,
    EventPlannerProfile,
    EventStatus,
    EventType,
    User,
    UserRole,
)
from shared.utils.security import create_access_token, hash_password


def auth_headers(user: User) -> dict:
    role = user.role.value if isinstance(user.role, UserRole) else user.role
    token, _ = create_access_token(str(user.id), role, user.email)
    return {"Authorization": f"Bearer {token}"}


def in_days(days: float) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


async def make_user(db: AsyncSession, role: UserRole, **fields) -> User:
    suffix = uuid.uuid4().hex[:8]
    user = User(
        id=uuid.uuid4(),
        email=fields.pop("email", f"{role.value.lower()}-{suffix}@example.com"),
        name=fields.pop("name", f"Test {role.value.title()}"),
        username=fields.pop("username", f"user_{suffix}"),
        role=role,
        password_hash=fields.pop("password_hash", hash_password("password123")),
        is_verified=True,
        is_active=fields.pop("is_active", True),
        **fields,
    )
    db.add(user)
    await db.commit()
    return user


async def make_professional(db: AsyncSession, categories=("PHOTOGRAPHY",), skills=("portrait",), **fields) -> User:
    profile_fields = {
        k: fields.pop(k) for k in ("hourly_rate", "daily_rate", "is_available") if k in fields
    }
    user = await make_user(db, UserRole.CREATIVE_PROFESSIONAL, **fields)
    db.add(CreativeProfile(
        id=uuid.uuid4(),
        user_id=user.id,
        categories=list(categories),
        skills=list(skills),
        portfolio_links=[],
        hourly_rate=profile_fields.get("hourly_rate", 100.0),
        daily_rate=profile_fields.get("daily_rate", 800.0),
        is_available=profile_fields.get("is_available", True),
    ))
    await db.commit()
    await db.refresh(user, ["creative_profile"])
    return user


async def make_planner(db: AsyncSession, **fields) -> User:
    user = await make_user(db, UserRole.EVENT_PLANNER, **fields)
    db.add(EventPlannerProfile(id=uuid.uuid4(), user_id=user.id, company_name="Bright Events"))
    await db.commit()
    await db.refresh(user, ["planner_profile"])
    return user


async def make_event(db: AsyncSession, planner: User, **fields) -> Event:
    event = Event(
        id=uuid.uuid4(),
        creator_id=planner.id,
        planner_profile_id=planner.planner_profile.id,
        title=fields.pop("title", "Summer Gala"),
        description=fields.pop("description", "An evening gala by the lake."),
        event_type=fields.pop("event_type", EventType.CORPORATE),
        start_date=fields.pop("start_date", in_days(10)),
        end_date=fields.pop("end_date", in_days(10.25)),
        location=fields.pop("location", "Chicago"),
        currency="USD",
        status=fields.pop("status", EventStatus.PUBLISHED),
        required_roles=fields.pop("required_roles", ["PHOTOGRAPHY"]),
        tags=fields.pop("tags", []),
        is_public=fields.pop("is_public", True),
        **fields,
    )
    db.add(event)
    await db.commit()
    await db.refresh(event)
    return event


# ── Database / app ────────────────────────────────────────────

@pytest_asyncio.fixture
async def database():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    database = Database(engine)
    await database.create_all()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def db(database: Database):
    async with database.session_factory() as session:
        yield session


@pytest.fixture
def app(database: Database):
    from main import app as application
    from services.realtime.manager import ConnectionManager

    async def override_get_db():
        async with database.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    application.state.db = database
    application.state.redis = None
    application.state.realtime = ConnectionManager()
    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def client_at(app, ip: str) -> AsyncClient:
    """A client whose requests arrive from the given peer address."""
    transport = ASGITransport(app=app, raise_app_exceptions=False, client=(ip, 123))
    return AsyncClient(transport=transport, base_url="http://test")


# ── Users ─────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def planner(db: AsyncSession) -> User:
    return await make_planner(db, name="Paula Planner")


@pytest_asyncio.fixture
async def professional(db: AsyncSession) -> User:
    return await make_professional(db, name="Pat Photographer", location="Chicago")


@pytest_asyncio.fixture
async def admin_user(db: AsyncSession) -> User:
    return await make_user(db, UserRole.ADMIN, name="Ada Admin")


@pytest_asyncio.fixture
async def published_event(db: AsyncSession, planner: User) -> Event:
    return await make_event(db, planner)
