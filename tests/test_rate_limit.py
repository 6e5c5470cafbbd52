"""
tests/test_rate_limit.py
Redis-backed rate limiting, the JWT deny-list and the health check,
using an in-memory stand-in for the Redis client.
"""

import pytest
from httpx import AsyncClient

from shared.models.models import User
from tests.conftest import auth_headers, client_at


class FakeRedis:
    """The subset of the redis.asyncio client the app calls."""

    def __init__(self):
        self.values = {}
        self.ttls = {}

    async def incr(self, key):
        self.values[key] = int(self.values.get(key, 0)) + 1
        return self.values[key]

    async def expire(self, key, seconds):
        self.ttls[key] = seconds

    async def setex(self, key, seconds, value):
        self.values[key] = value
        self.ttls[key] = seconds

    async def get(self, key):
        return self.values.get(key)

    async def exists(self, key):
        return 1 if key in self.values else 0

    async def delete(self, key):
        self.values.pop(key, None)

    async def ping(self):
        return True


@pytest.fixture
def fake_redis(app):
    redis = FakeRedis()
    app.state.redis = redis
    return redis


async def bad_signin(client: AsyncClient, user: User, forwarded_for: str = "203.0.113.7"):
    return await client.post(
        "/api/auth/signin",
        json={"email": user.email, "password": "wrong-password"},
        headers={"X-Forwarded-For": forwarded_for},
    )


@pytest.mark.asyncio
async def test_auth_tier_blocks_after_limit(app, client: AsyncClient, fake_redis: FakeRedis, planner: User):
    for _ in range(10):
        assert (await bad_signin(client, planner)).status_code == 401

    blocked = await bad_signin(client, planner)
    assert blocked.status_code == 429
    assert blocked.headers["Retry-After"] == str(15 * 60)
    assert blocked.json()["error"] == "RATE_LIMIT_EXCEEDED"
    assert fake_redis.ttls["rate:auth:ip:127.0.0.1"] == 15 * 60

    # Counters are per peer address
    async with client_at(app, "198.51.100.2") as other:
        assert (await bad_signin(other, planner)).status_code == 401


@pytest.mark.asyncio
async def test_forwarded_header_does_not_reset_counter(client: AsyncClient, fake_redis: FakeRedis, planner: User):
    statuses = [
        (await bad_signin(client, planner, forwarded_for=f"198.51.100.{i}")).status_code
        for i in range(15)
    ]
    assert statuses[:10] == [401] * 10
    assert statuses[10:] == [429] * 5
    assert not any("198.51.100" in key for key in fake_redis.values)


@pytest.mark.asyncio
async def test_authenticated_callers_limited_per_user(
    client: AsyncClient, fake_redis: FakeRedis, planner: User, professional: User
):
    await client.get("/api/auth/me", headers=auth_headers(planner))
    await client.get("/api/auth/me", headers=auth_headers(professional))
    await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})

    assert fake_redis.values[f"rate:global:user:{planner.id}"] == 1
    assert fake_redis.values[f"rate:global:user:{professional.id}"] == 1
    assert fake_redis.values["rate:global:ip:127.0.0.1"] == 1


@pytest.mark.asyncio
async def test_no_limits_without_redis(client: AsyncClient, planner: User):
    for _ in range(12):
        assert (await bad_signin(client, planner)).status_code == 401


@pytest.mark.asyncio
async def test_logout_denies_access_token(client: AsyncClient, fake_redis: FakeRedis, planner: User):
    headers = auth_headers(planner)
    assert (await client.get("/api/auth/me", headers=headers)).status_code == 200

    logout = await client.post("/api/auth/logout", headers=headers)
    assert logout.status_code == 200
    assert any(key.startswith("jwt_revoked:") for key in fake_redis.values)

    me = await client.get("/api/auth/me", headers=headers)
    assert me.status_code == 401


# ── Health ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_health_with_redis_disabled(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["database"] == "ok"
    assert body["redis"] == "disabled"
    assert body["connections"] == 0


@pytest.mark.asyncio
async def test_health_with_redis(client: AsyncClient, fake_redis: FakeRedis):
    response = await client.get("/health")
    assert response.json()["redis"] == "ok"
