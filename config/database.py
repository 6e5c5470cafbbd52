"""
config/database.py
Async SQLAlchemy engine, session factory, and base model.
The Database handle is created by the process entry point and
stored on app.state; nothing here is a module-level connection.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool
from tenacity import (
    before_sleep_log,
    retry,
    stop_after_attempt,
    wait_exponential,
)

from config.settings import Settings, settings

logger = logging.getLogger(__name__)


# ── Base Model ────────────────────────────────────────────────
class Base(DeclarativeBase):
    """All ORM models inherit from this."""
    pass


def build_engine(config: Settings = settings, *, null_pool: bool = False) -> AsyncEngine:
    """Create the async engine. Pool sizing applies to PostgreSQL only."""
    kwargs = {"echo": config.DEBUG}
    if null_pool:
        kwargs["poolclass"] = NullPool
    elif config.DATABASE_URL.startswith("postgresql"):
        kwargs.update(
            pool_size=config.DATABASE_POOL_SIZE,
            max_overflow=config.DATABASE_MAX_OVERFLOW,
            pool_timeout=config.DATABASE_POOL_TIMEOUT,
            pool_pre_ping=True,          # Detect stale connections
            pool_recycle=3600,           # Recycle connections every hour
        )
    return create_async_engine(config.DATABASE_URL, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,      # Don't expire after commit (async-safe)
        autoflush=False,
    )


# ── Database handle ───────────────────────────────────────────
class Database:
    """Owns one engine + session factory for the lifetime of a process."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = build_session_factory(engine)

    @classmethod
    def from_settings(cls, config: Settings = settings, **kwargs) -> "Database":
        return cls(build_engine(config, **kwargs))

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def connect_with_retry(self, config: Settings = settings) -> None:
        """
        Verify connectivity with exponential backoff:
        initial delay DB_CONNECT_INITIAL_DELAY, multiplied by
        DB_CONNECT_BACKOFF_FACTOR per attempt, capped at DB_CONNECT_MAX_DELAY.
        Re-raises the last error once DB_CONNECT_MAX_ATTEMPTS is exhausted.
        """
        retrying = retry(
            stop=stop_after_attempt(config.DB_CONNECT_MAX_ATTEMPTS),
            wait=wait_exponential(
                multiplier=config.DB_CONNECT_INITIAL_DELAY,
                exp_base=config.DB_CONNECT_BACKOFF_FACTOR,
                max=config.DB_CONNECT_MAX_DELAY,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        await retrying(self.ping)()

    async def create_all(self) -> None:
        """Create all tables. Migrations own the schema in production."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Context manager for use outside of FastAPI routes (tasks, scripts)."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        """Dispose engine. Run during app shutdown."""
        await self.engine.dispose()


# ── Dependency ────────────────────────────────────────────────
async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency: yields an async database session bound to the
    Database handle on app.state. Services commit their own unit of
    work; any error rolls the session back.
    """
    database: Optional[Database] = getattr(request.app.state, "db", None)
    if database is None:
        raise RuntimeError("Database not initialized on app.state")
    async with database.session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
