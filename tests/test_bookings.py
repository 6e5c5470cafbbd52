"""
tests/test_bookings.py
Booking creation, conflict detection and the role-aware state machine.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import (
    DeliveryStatus,
    Event,
    Notification,
    NotificationPriority,
    NotificationType,
    User,
)
from tests.conftest import auth_headers, in_days, make_event, make_planner, make_professional


def booking_body(event: Event, professional: User, start: float = 10, end: float = 10.25, **overrides) -> dict:
    body = {
        "eventId": str(event.id),
        "professionalId": str(professional.id),
        "startDate": in_days(start).isoformat(),
        "endDate": in_days(end).isoformat(),
        "rate": 800,
    }
    body.update(overrides)
    return body


async def create_booking(client: AsyncClient, planner: User, body: dict):
    return await client.post("/api/bookings", json=body, headers=auth_headers(planner))


async def move(client: AsyncClient, booking_id: str, user: User, status: str, reason: str = None):
    body = {"status": status}
    if reason:
        body["reason"] = reason
    return await client.patch(f"/api/bookings/{booking_id}/status", json=body, headers=auth_headers(user))


@pytest.mark.asyncio
async def test_create_booking_notifies_professional(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User, published_event: Event
):
    response = await create_booking(client, planner, booking_body(published_event, professional))
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "PENDING"
    assert data["plannerId"] == str(planner.id)
    assert data["professional"]["name"] == "Pat Photographer"

    notification = (await db.execute(
        select(Notification).where(Notification.user_id == professional.id)
    )).scalar_one()
    assert notification.type == NotificationType.BOOKING_REQUEST
    assert notification.priority == NotificationPriority.HIGH
    assert notification.email_status == DeliveryStatus.PENDING
    assert notification.push_status == DeliveryStatus.SKIPPED
    assert notification.extra["bookingId"] == data["id"]


@pytest.mark.asyncio
async def test_only_event_owner_can_book(
    client: AsyncClient, db: AsyncSession, professional: User, published_event: Event
):
    other = await make_planner(db)
    response = await create_booking(client, other, booking_body(published_event, professional))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_booking_a_planner_is_not_found(
    client: AsyncClient, db: AsyncSession, planner: User, published_event: Event
):
    other = await make_planner(db)
    response = await create_booking(client, planner, booking_body(published_event, other))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_duplicate_active_booking_conflicts(
    client: AsyncClient, planner: User, professional: User, published_event: Event
):
    assert (await create_booking(client, planner, booking_body(published_event, professional))).status_code == 201
    response = await create_booking(client, planner, booking_body(published_event, professional, start=30, end=31))
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_overlapping_booking_conflicts(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User, published_event: Event
):
    other_event = await make_event(db, planner, title="Overlapping Expo")
    assert (await create_booking(client, planner, booking_body(published_event, professional))).status_code == 201

    clash = await create_booking(client, planner, booking_body(other_event, professional, start=10.1, end=10.5))
    assert clash.status_code == 409

    later = await create_booking(client, planner, booking_body(other_event, professional, start=12, end=12.5))
    assert later.status_code == 201


@pytest.mark.asyncio
async def test_rejected_booking_frees_the_slot(
    client: AsyncClient, planner: User, professional: User, published_event: Event
):
    booking_id = (await create_booking(client, planner, booking_body(published_event, professional))).json()["data"]["id"]
    assert (await move(client, booking_id, professional, "REJECTED", "Unavailable")).status_code == 200

    again = await create_booking(client, planner, booking_body(published_event, professional))
    assert again.status_code == 201


@pytest.mark.asyncio
async def test_full_lifecycle(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User, published_event: Event
):
    booking_id = (await create_booking(client, planner, booking_body(published_event, professional))).json()["data"]["id"]

    assert (await move(client, booking_id, professional, "CONFIRMED")).json()["data"]["status"] == "CONFIRMED"
    assert (await move(client, booking_id, planner, "IN_PROGRESS")).json()["data"]["status"] == "IN_PROGRESS"
    assert (await move(client, booking_id, planner, "COMPLETED")).json()["data"]["status"] == "COMPLETED"

    planner_titles = (await db.execute(
        select(Notification.title).where(Notification.user_id == planner.id).order_by(Notification.created_at)
    )).scalars().all()
    assert planner_titles == ["Booking Accepted"]


@pytest.mark.asyncio
async def test_planner_cannot_confirm(
    client: AsyncClient, planner: User, professional: User, published_event: Event
):
    booking_id = (await create_booking(client, planner, booking_body(published_event, professional))).json()["data"]["id"]
    response = await move(client, booking_id, planner, "CONFIRMED")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_professional_cannot_cancel_pending(
    client: AsyncClient, planner: User, professional: User, published_event: Event
):
    booking_id = (await create_booking(client, planner, booking_body(published_event, professional))).json()["data"]["id"]
    response = await move(client, booking_id, professional, "CANCELLED")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_cancellation_records_reason(
    client: AsyncClient, planner: User, professional: User, published_event: Event
):
    booking_id = (await create_booking(client, planner, booking_body(published_event, professional))).json()["data"]["id"]
    response = await move(client, booking_id, planner, "CANCELLED", "Event postponed")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "CANCELLED"
    assert data["cancellationReason"] == "Event postponed"


@pytest.mark.asyncio
async def test_terminal_status_cannot_change(
    client: AsyncClient, planner: User, professional: User, published_event: Event
):
    booking_id = (await create_booking(client, planner, booking_body(published_event, professional))).json()["data"]["id"]
    await move(client, booking_id, planner, "CANCELLED")
    response = await move(client, booking_id, professional, "CONFIRMED")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_non_participant_forbidden(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User, published_event: Event
):
    booking_id = (await create_booking(client, planner, booking_body(published_event, professional))).json()["data"]["id"]
    outsider = await make_professional(db)

    assert (await client.get(f"/api/bookings/{booking_id}", headers=auth_headers(outsider))).status_code == 403
    assert (await move(client, booking_id, outsider, "CONFIRMED")).status_code == 403


@pytest.mark.asyncio
async def test_booking_stats(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User, published_event: Event
):
    second = await make_event(db, planner, title="Second Event")
    first_id = (await create_booking(client, planner, booking_body(published_event, professional))).json()["data"]["id"]
    await create_booking(client, planner, booking_body(second, professional, start=20, end=20.5))

    await move(client, first_id, professional, "CONFIRMED")
    await move(client, first_id, planner, "IN_PROGRESS")
    await move(client, first_id, planner, "COMPLETED")

    response = await client.get("/api/bookings/stats", headers=auth_headers(planner))
    assert response.status_code == 200
    stats = response.json()["data"]
    assert stats["total"] == 2
    assert stats["pending"] == 1
    assert stats["completed"] == 1
    assert stats["inProgress"] == 0
    assert stats["active"] == 1
    assert stats["completedValue"] == 800.0


@pytest.mark.asyncio
async def test_list_bookings_scoped_to_participant(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User, published_event: Event
):
    await create_booking(client, planner, booking_body(published_event, professional))
    outsider = await make_professional(db)

    mine = await client.get("/api/bookings", headers=auth_headers(professional))
    assert mine.json()["pagination"]["total"] == 1

    theirs = await client.get("/api/bookings", headers=auth_headers(outsider))
    assert theirs.json()["data"] == []
