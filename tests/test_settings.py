"""
tests/test_settings.py
DATABASE_URL normalisation and validation.
"""

import pytest
from pydantic import ValidationError

from config.settings import Settings


@pytest.mark.parametrize("url,expected", [
    ("postgres://app:secret@db:5432/collab", "postgresql+asyncpg://app:secret@db:5432/collab"),
    ("postgresql://app:secret@db:5432/collab", "postgresql+asyncpg://app:secret@db:5432/collab"),
    ("postgres+asyncpg://app@db/collab", "postgresql+asyncpg://app@db/collab"),
    ("postgresql+asyncpg://app@db/collab", "postgresql+asyncpg://app@db/collab"),
    ("sqlite+aiosqlite:///./local.db", "sqlite+aiosqlite:///./local.db"),
])
def test_database_url_normalised(url, expected):
    assert Settings(DATABASE_URL=url).DATABASE_URL == expected


@pytest.mark.parametrize("url", [
    "mysql://app:secret@db:3306/collab",
    "postgresql://app:secret@/collab",
])
def test_database_url_rejected(url):
    with pytest.raises(ValidationError):
        Settings(DATABASE_URL=url)


def test_blank_redis_url_disables_redis():
    assert Settings(REDIS_URL="").REDIS_URL is None


def test_rate_limit_window_in_seconds():
    assert Settings(RATE_LIMIT_WINDOW_MS=90_000).rate_limit_window_seconds == 90
