"""
tests/test_portfolio.py
Public portfolio pages, deduplicated view tracking and the project dashboard.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from services.portfolio.service import PortfolioService
from shared.models.models import User
from shared.utils.dates import utcnow
from tests.conftest import auth_headers, client_at


async def add_project(client: AsyncClient, owner: User, **body):
    payload = {"title": "Lakeside Wedding", **body}
    return await client.post(
        f"/api/portfolio/{owner.username}/dashboard/projects", json=payload, headers=auth_headers(owner)
    )


@pytest.mark.asyncio
async def test_public_portfolio_shows_public_projects(client: AsyncClient, professional: User):
    await add_project(client, professional, title="Featured Shoot", isFeatured=True, sortOrder=5)
    await add_project(client, professional, title="Regular Shoot", sortOrder=1)
    await add_project(client, professional, title="Hidden Shoot", isPublic=False)

    response = await client.get(f"/api/portfolio/{professional.username}")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["name"] == "Pat Photographer"
    assert data["profile"]["categories"] == ["PHOTOGRAPHY"]
    assert [p["title"] for p in data["projects"]] == ["Featured Shoot", "Regular Shoot"]


@pytest.mark.asyncio
async def test_username_lookup_is_case_insensitive(client: AsyncClient, professional: User):
    response = await client.get(f"/api/portfolio/{professional.username.upper()}")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_planner_has_no_portfolio(client: AsyncClient, planner: User):
    response = await client.get(f"/api/portfolio/{planner.username}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_views_deduplicated_per_ip(app, client: AsyncClient, professional: User):
    url = f"/api/portfolio/{professional.username}"
    async with client_at(app, "10.0.0.1") as first:
        await first.get(url)
        await first.get(url)
    async with client_at(app, "10.0.0.2") as second:
        # A spoofed forwarding header does not make this a repeat visit
        await second.get(url, headers={"X-Forwarded-For": "10.0.0.1"})
    # The owner's own visits are not counted
    await client.get(url, headers=auth_headers(professional))

    stats = await client.get(f"{url}/dashboard/stats", headers=auth_headers(professional))
    assert stats.status_code == 200
    data = stats.json()["data"]
    assert data["totalViews"] == 2
    assert data["recentViews"] == 2
    assert data["viewsHistory"][-1]["views"] == 2
    assert len(data["viewsHistory"]) == data["recentViewsDays"] + 1


@pytest.mark.asyncio
async def test_view_counted_again_after_dedup_window(db: AsyncSession, professional: User):
    service = PortfolioService(db)
    start = utcnow() - timedelta(hours=3)
    assert await service.record_view(professional.id, "10.0.0.9", now=start) is True
    assert await service.record_view(professional.id, "10.0.0.9", now=start + timedelta(minutes=30)) is False
    assert await service.record_view(professional.id, "10.0.0.9", now=start + timedelta(minutes=90)) is True


@pytest.mark.asyncio
async def test_old_views_fall_out_of_recent_window(db: AsyncSession, professional: User):
    service = PortfolioService(db)
    await service.record_view(professional.id, "10.0.0.1", now=utcnow() - timedelta(days=45))
    await service.record_view(professional.id, "10.0.0.2")

    stats = await service.get_stats(professional)
    assert stats["totalViews"] == 2
    assert stats["recentViews"] == 1


@pytest.mark.asyncio
async def test_dashboard_is_owner_only(client: AsyncClient, db: AsyncSession, planner: User, professional: User):
    response = await client.get(
        f"/api/portfolio/{professional.username}/dashboard/stats", headers=auth_headers(planner)
    )
    assert response.status_code == 403

    create = await add_project(client, professional)
    project_id = create.json()["data"]["id"]
    response = await client.delete(
        f"/api/portfolio/{professional.username}/dashboard/projects/{project_id}",
        headers=auth_headers(planner),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_update_and_delete_project(client: AsyncClient, professional: User):
    project_id = (await add_project(client, professional)).json()["data"]["id"]
    base = f"/api/portfolio/{professional.username}/dashboard/projects/{project_id}"

    updated = await client.put(base, json={"title": "Renamed", "tags": ["outdoor"]}, headers=auth_headers(professional))
    assert updated.status_code == 200
    assert updated.json()["data"]["title"] == "Renamed"
    assert updated.json()["data"]["tags"] == ["outdoor"]

    nulled = await client.put(base, json={"title": None}, headers=auth_headers(professional))
    assert nulled.status_code == 400

    assert (await client.delete(base, headers=auth_headers(professional))).status_code == 200
    listing = await client.get(
        f"/api/portfolio/{professional.username}/dashboard/projects", headers=auth_headers(professional)
    )
    assert listing.json()["data"] == []
