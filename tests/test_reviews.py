"""
tests/test_reviews.py
Reviews after completed bookings and the rating summary on profiles.
"""

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import Booking, BookingStatus, Event, User
from tests.conftest import auth_headers, in_days, make_planner, make_professional


async def make_booking(db: AsyncSession, event: Event, planner: User, professional: User,
                       status: BookingStatus = BookingStatus.COMPLETED) -> Booking:
    booking = Booking(
        id=uuid.uuid4(),
        event_id=event.id,
        planner_id=planner.id,
        professional_id=professional.id,
        start_date=in_days(-3),
        end_date=in_days(-2.9),
        rate=500,
        currency="USD",
        status=status,
    )
    db.add(booking)
    await db.commit()
    return booking


async def post_review(client: AsyncClient, user: User, booking: Booking, rating: int = 5, **extra):
    body = {"bookingId": str(booking.id), "rating": rating, **extra}
    return await client.post("/api/reviews", json=body, headers=auth_headers(user))


@pytest.mark.asyncio
async def test_planner_reviews_completed_booking(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User, published_event: Event
):
    booking = await make_booking(db, published_event, planner, professional)
    response = await post_review(client, planner, booking, 5, comment="Stunning photos", quality=5)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["revieweeId"] == str(professional.id)
    assert data["reviewerId"] == str(planner.id)
    assert data["rating"] == 5

    inbox = await client.get("/api/notifications", headers=auth_headers(professional))
    assert inbox.json()["data"][0]["type"] == "REVIEW_RECEIVED"


@pytest.mark.asyncio
async def test_review_requires_completed_booking(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User, published_event: Event
):
    booking = await make_booking(db, published_event, planner, professional, BookingStatus.CONFIRMED)
    response = await post_review(client, planner, booking)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_review_twice_conflicts(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User, published_event: Event
):
    booking = await make_booking(db, published_event, planner, professional)
    assert (await post_review(client, planner, booking)).status_code == 201
    assert (await post_review(client, planner, booking, 3)).status_code == 409

    # The other side may still review the same booking
    assert (await post_review(client, professional, booking, 4)).status_code == 201


@pytest.mark.asyncio
async def test_outsider_cannot_review(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User, published_event: Event
):
    booking = await make_booking(db, published_event, planner, professional)
    outsider = await make_planner(db)
    assert (await post_review(client, outsider, booking)).status_code == 403


@pytest.mark.asyncio
async def test_rating_out_of_range_rejected(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User, published_event: Event
):
    booking = await make_booking(db, published_event, planner, professional)
    assert (await post_review(client, planner, booking, 6)).status_code == 400


@pytest.mark.asyncio
async def test_public_profile_rating_summary(
    client: AsyncClient, db: AsyncSession, professional: User, published_event: Event
):
    for rating in (5, 4, 4):
        planner = await make_planner(db)
        booking = await make_booking(db, published_event, planner, professional)
        assert (await post_review(client, planner, booking, rating)).status_code == 201

    response = await client.get(f"/api/users/{professional.id}")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["averageRating"] == 4.3
    assert data["totalReviews"] == 3


@pytest.mark.asyncio
async def test_list_reviews_by_professional_profile(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User, published_event: Event
):
    booking = await make_booking(db, published_event, planner, professional)
    await post_review(client, planner, booking, 5)
    other = await make_professional(db)

    response = await client.get(f"/api/reviews?professionalId={professional.creative_profile.id}")
    assert response.json()["pagination"]["total"] == 1

    empty = await client.get(f"/api/reviews?professionalId={other.creative_profile.id}")
    assert empty.json()["data"] == []


@pytest.mark.asyncio
async def test_only_reviewer_edits(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User, published_event: Event
):
    booking = await make_booking(db, published_event, planner, professional)
    review_id = (await post_review(client, planner, booking, 3)).json()["data"]["id"]

    forbidden = await client.put(f"/api/reviews/{review_id}", json={"rating": 1}, headers=auth_headers(professional))
    assert forbidden.status_code == 403

    edited = await client.put(f"/api/reviews/{review_id}", json={"rating": 4}, headers=auth_headers(planner))
    assert edited.status_code == 200
    assert edited.json()["data"]["rating"] == 4

    cleared = await client.put(f"/api/reviews/{review_id}", json={"rating": None}, headers=auth_headers(planner))
    assert cleared.status_code == 400


@pytest.mark.asyncio
async def test_admin_deletes_review(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User,
    admin_user: User, published_event: Event
):
    booking = await make_booking(db, published_event, planner, professional)
    review_id = (await post_review(client, planner, booking)).json()["data"]["id"]

    response = await client.delete(f"/api/reviews/{review_id}", headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert (await client.get(f"/api/reviews/{review_id}")).status_code == 404
