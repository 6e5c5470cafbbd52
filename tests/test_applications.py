"""
tests/test_applications.py
Applying to events and the application status workflow.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from services.application.service import ApplicationService
from shared.models.models import Event, EventStatus, Notification, NotificationType, User
from tests.conftest import auth_headers, in_days, make_event, make_professional


async def apply(client: AsyncClient, event: Event, user: User, **body):
    return await client.post(f"/api/events/{event.id}/apply", json=body, headers=auth_headers(user))


@pytest.mark.asyncio
async def test_apply_to_published_event(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User, published_event: Event
):
    response = await apply(client, published_event, professional, message="I'd love to shoot this.", proposedRate=450)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "PENDING"
    assert data["eventId"] == str(published_event.id)
    assert data["professionalId"] == str(professional.creative_profile.id)
    assert data["proposedRate"] == 450

    notifications = (await db.execute(
        select(Notification).where(Notification.user_id == planner.id)
    )).scalars().all()
    assert len(notifications) == 1
    assert notifications[0].type == NotificationType.APPLICATION_UPDATE
    assert notifications[0].extra["applicationId"] == data["id"]


@pytest.mark.asyncio
async def test_duplicate_application_conflicts(client: AsyncClient, professional: User, published_event: Event):
    first = await apply(client, published_event, professional)
    assert first.status_code == 201
    second = await apply(client, published_event, professional)
    assert second.status_code == 409


@pytest.mark.asyncio
async def test_cannot_apply_to_draft(client: AsyncClient, db: AsyncSession, planner: User, professional: User):
    draft = await make_event(db, planner, status=EventStatus.DRAFT, is_public=False)
    response = await apply(client, draft, professional)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_cannot_apply_after_deadline(client: AsyncClient, db: AsyncSession, planner: User, professional: User):
    event = await make_event(db, planner, deadline_date=in_days(-1))
    response = await apply(client, event, professional)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_max_applicants_enforced(client: AsyncClient, db: AsyncSession, planner: User, professional: User):
    event = await make_event(db, planner, max_applicants=1)
    assert (await apply(client, event, professional)).status_code == 201

    latecomer = await make_professional(db)
    response = await apply(client, event, latecomer)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_planner_cannot_apply(client: AsyncClient, planner: User, published_event: Event):
    response = await apply(client, published_event, planner)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_owner_accepts_then_rejects(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User, published_event: Event
):
    application_id = (await apply(client, published_event, professional)).json()["data"]["id"]

    accepted = await client.patch(
        f"/api/applications/{application_id}/status",
        json={"status": "ACCEPTED"},
        headers=auth_headers(planner),
    )
    assert accepted.status_code == 200
    assert accepted.json()["data"]["status"] == "ACCEPTED"

    rejected = await client.patch(
        f"/api/applications/{application_id}/status",
        json={"status": "REJECTED"},
        headers=auth_headers(planner),
    )
    assert rejected.status_code == 200

    titles = (await db.execute(
        select(Notification.title).where(Notification.user_id == professional.id).order_by(Notification.created_at)
    )).scalars().all()
    assert titles == ["Application Accepted", "Application Declined"]


@pytest.mark.asyncio
async def test_status_back_to_pending_is_rejected(
    client: AsyncClient, planner: User, professional: User, published_event: Event
):
    application_id = (await apply(client, published_event, professional)).json()["data"]["id"]
    response = await client.patch(
        f"/api/applications/{application_id}/status",
        json={"status": "PENDING"},
        headers=auth_headers(planner),
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_only_owner_updates_status(
    client: AsyncClient, professional: User, published_event: Event
):
    application_id = (await apply(client, published_event, professional)).json()["data"]["id"]
    response = await client.patch(
        f"/api/applications/{application_id}/status",
        json={"status": "ACCEPTED"},
        headers=auth_headers(professional),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_edit_and_withdraw_pending_application(
    client: AsyncClient, professional: User, published_event: Event
):
    application_id = (await apply(client, published_event, professional)).json()["data"]["id"]

    edited = await client.put(
        f"/api/applications/{application_id}",
        json={"message": "Updated pitch", "proposedRate": 300},
        headers=auth_headers(professional),
    )
    assert edited.status_code == 200
    assert edited.json()["data"]["message"] == "Updated pitch"

    # The pitch and rate are optional on an application, so null clears them
    cleared = await client.put(
        f"/api/applications/{application_id}",
        json={"message": None},
        headers=auth_headers(professional),
    )
    assert cleared.status_code == 200
    assert cleared.json()["data"]["message"] is None

    withdrawn = await client.delete(f"/api/applications/{application_id}", headers=auth_headers(professional))
    assert withdrawn.status_code == 200

    missing = await client.get(f"/api/applications/{application_id}", headers=auth_headers(professional))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_cannot_withdraw_decided_application(
    client: AsyncClient, planner: User, professional: User, published_event: Event
):
    application_id = (await apply(client, published_event, professional)).json()["data"]["id"]
    await client.patch(
        f"/api/applications/{application_id}/status",
        json={"status": "ACCEPTED"},
        headers=auth_headers(planner),
    )
    response = await client.delete(f"/api/applications/{application_id}", headers=auth_headers(professional))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_event_applications_visible_to_owner_only(
    client: AsyncClient, planner: User, professional: User, published_event: Event
):
    await apply(client, published_event, professional)

    owner = await client.get(f"/api/applications/event/{published_event.id}", headers=auth_headers(planner))
    assert owner.status_code == 200
    assert owner.json()["pagination"]["total"] == 1

    stranger = await client.get(f"/api/applications/event/{published_event.id}", headers=auth_headers(professional))
    assert stranger.status_code == 403


@pytest.mark.asyncio
async def test_application_stats(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User, published_event: Event
):
    second_event = await make_event(db, planner, title="Autumn Fair")
    first_id = (await apply(client, published_event, professional)).json()["data"]["id"]
    await apply(client, second_event, professional)
    await client.patch(
        f"/api/applications/{first_id}/status",
        json={"status": "ACCEPTED"},
        headers=auth_headers(planner),
    )

    response = await client.get("/api/applications/stats", headers=auth_headers(professional))
    assert response.status_code == 200
    stats = response.json()["data"]
    assert stats == {"total": 2, "pending": 1, "accepted": 1, "rejected": 0, "acceptanceRate": 50.0}


@pytest.mark.asyncio
async def test_stats_service_keys_are_camel_case(db: AsyncSession, professional: User):
    stats = await ApplicationService(db).get_stats(professional)
    assert stats == {"total": 0, "pending": 0, "accepted": 0, "rejected": 0, "acceptanceRate": 0.0}
