"""
tests/test_events.py
Event CRUD, visibility and publishing.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import Event, EventStatus, User
from tests.conftest import auth_headers, in_days, make_event, make_planner


def event_body(**overrides) -> dict:
    body = {
        "title": "Rooftop Launch Party",
        "description": "Product launch with live music and catering.",
        "eventType": "CORPORATE",
        "startDate": in_days(20).isoformat(),
        "endDate": in_days(20.2).isoformat(),
        "location": "Chicago",
        "budget": 5000,
        "requiredRoles": ["photography", "dj"],
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_create_event_is_published_by_default(client: AsyncClient, planner: User):
    response = await client.post("/api/events", json=event_body(), headers=auth_headers(planner))
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "PUBLISHED"
    assert data["creatorId"] == str(planner.id)
    assert data["requiredRoles"] == ["PHOTOGRAPHY", "DJ"]
    assert data["applicationCount"] == 0


@pytest.mark.asyncio
async def test_private_event_starts_as_draft(client: AsyncClient, planner: User):
    response = await client.post("/api/events", json=event_body(isPublic=False), headers=auth_headers(planner))
    assert response.status_code == 201
    assert response.json()["data"]["status"] == "DRAFT"


@pytest.mark.asyncio
async def test_create_event_rejects_end_before_start(client: AsyncClient, planner: User):
    body = event_body(startDate=in_days(5).isoformat(), endDate=in_days(4).isoformat())
    response = await client.post("/api/events", json=body, headers=auth_headers(planner))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_professional_cannot_create_event(client: AsyncClient, professional: User):
    response = await client.post("/api/events", json=event_body(), headers=auth_headers(professional))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_only_owner_can_update(client: AsyncClient, db: AsyncSession, published_event: Event):
    other = await make_planner(db)
    response = await client.put(
        f"/api/events/{published_event.id}",
        json={"title": "Hijacked"},
        headers=auth_headers(other),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_owner_updates_event(client: AsyncClient, planner: User, published_event: Event):
    response = await client.put(
        f"/api/events/{published_event.id}",
        json={"title": "Winter Gala", "budget": 12000},
        headers=auth_headers(planner),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["title"] == "Winter Gala"
    assert data["budget"] == 12000


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["startDate", "endDate", "title", "eventType", "tags", "isPublic"])
async def test_update_rejects_null_for_required_field(
    client: AsyncClient, planner: User, published_event: Event, field: str
):
    response = await client.put(
        f"/api/events/{published_event.id}",
        json={field: None},
        headers=auth_headers(planner),
    )
    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_update_clears_nullable_field(client: AsyncClient, planner: User, published_event: Event):
    response = await client.put(
        f"/api/events/{published_event.id}",
        json={"budget": None},
        headers=auth_headers(planner),
    )
    assert response.status_code == 200
    assert response.json()["data"]["budget"] is None


@pytest.mark.asyncio
async def test_draft_event_hidden_from_others(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User
):
    draft = await make_event(db, planner, status=EventStatus.DRAFT, is_public=False)

    anonymous = await client.get(f"/api/events/{draft.id}")
    assert anonymous.status_code == 403

    stranger = await client.get(f"/api/events/{draft.id}", headers=auth_headers(professional))
    assert stranger.status_code == 403

    owner = await client.get(f"/api/events/{draft.id}", headers=auth_headers(planner))
    assert owner.status_code == 200


@pytest.mark.asyncio
async def test_publish_draft(client: AsyncClient, db: AsyncSession, planner: User):
    draft = await make_event(db, planner, status=EventStatus.DRAFT, is_public=False)
    response = await client.patch(f"/api/events/{draft.id}/publish", headers=auth_headers(planner))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "PUBLISHED"
    assert data["isPublic"] is True


@pytest.mark.asyncio
async def test_cannot_publish_cancelled_event(client: AsyncClient, db: AsyncSession, planner: User):
    cancelled = await make_event(db, planner, status=EventStatus.CANCELLED)
    response = await client.patch(f"/api/events/{cancelled.id}/publish", headers=auth_headers(planner))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_missing_event_returns_404(client: AsyncClient):
    response = await client.get("/api/events/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_my_events_lists_only_own(client: AsyncClient, db: AsyncSession, planner: User, published_event: Event):
    other = await make_planner(db)
    await make_event(db, other, title="Someone Else's Party")

    response = await client.get("/api/events/my", headers=auth_headers(planner))
    assert response.status_code == 200
    body = response.json()
    assert [e["id"] for e in body["data"]] == [str(published_event.id)]
    assert body["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_public_listing_excludes_drafts(client: AsyncClient, db: AsyncSession, planner: User, published_event: Event):
    await make_event(db, planner, title="Secret Draft", status=EventStatus.DRAFT, is_public=False)
    response = await client.get("/api/events")
    assert response.status_code == 200
    titles = [e["title"] for e in response.json()["data"]]
    assert titles == ["Summer Gala"]


@pytest.mark.asyncio
async def test_delete_event(client: AsyncClient, planner: User, published_event: Event):
    response = await client.delete(f"/api/events/{published_event.id}", headers=auth_headers(planner))
    assert response.status_code == 200
    missing = await client.get(f"/api/events/{published_event.id}")
    assert missing.status_code == 404
