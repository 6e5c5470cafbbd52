"""
tests/test_notifications.py
Notification inbox, the email/push outbox relay, and the reminder scan.
"""

import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient
from pybreaker import CircuitBreaker
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from services.notification.delivery import DeliveryChannels, relay_pending_notifications, render_email
from services.notification.service import NotificationService, truncate_preview
from shared.models.models import (
    Booking,
    BookingStatus,
    DeliveryStatus,
    Notification,
    NotificationPriority,
    NotificationType,
    User,
)
from shared.utils.dates import utcnow
from tests.conftest import auth_headers, in_days, make_event, make_planner


async def notify(db: AsyncSession, user: User, title: str = "Hello", send_email: bool = False) -> Notification:
    service = NotificationService(db)
    notification = await service.send_notification(
        user_id=user.id,
        type=NotificationType.SYSTEM,
        title=title,
        message=f"{title} body",
        send_email=send_email,
    )
    await db.commit()
    return notification


class Recorder:
    """Sync channel sender that records calls and optionally fails."""

    def __init__(self, error: Exception = None):
        self.calls = []
        self.error = error

    def __call__(self, *args):
        self.calls.append(args)
        if self.error:
            raise self.error


def channels(email=None, push=None) -> DeliveryChannels:
    return DeliveryChannels(
        email=email or Recorder(),
        push=push or Recorder(),
        email_cb=CircuitBreaker(fail_max=5, reset_timeout=60, name="test-email"),
        push_cb=CircuitBreaker(fail_max=5, reset_timeout=60, name="test-push"),
    )


# ── Inbox ─────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_inbox_newest_first_with_unread_count(client: AsyncClient, db: AsyncSession, professional: User):
    await notify(db, professional, "First")
    await notify(db, professional, "Second")

    response = await client.get("/api/notifications", headers=auth_headers(professional))
    assert response.status_code == 200
    body = response.json()
    assert [n["title"] for n in body["data"]] == ["Second", "First"]
    assert body["pagination"]["total"] == 2

    count = await client.get("/api/notifications/unread-count", headers=auth_headers(professional))
    assert count.json()["data"]["count"] == 2


@pytest.mark.asyncio
async def test_mark_one_and_all_read(client: AsyncClient, db: AsyncSession, professional: User):
    first = await notify(db, professional, "First")
    await notify(db, professional, "Second")
    await notify(db, professional, "Third")

    one = await client.patch(f"/api/notifications/{first.id}/read", headers=auth_headers(professional))
    assert one.status_code == 200
    assert one.json()["data"]["isRead"] is True

    unread = await client.get("/api/notifications?unreadOnly=true", headers=auth_headers(professional))
    assert unread.json()["pagination"]["total"] == 2

    everything = await client.patch("/api/notifications/read-all", headers=auth_headers(professional))
    assert everything.json()["data"]["updated"] == 2

    count = await client.get("/api/notifications/unread-count", headers=auth_headers(professional))
    assert count.json()["data"]["count"] == 0


@pytest.mark.asyncio
async def test_cannot_touch_someone_elses_notification(
    client: AsyncClient, db: AsyncSession, planner: User, professional: User
):
    notification = await notify(db, professional)
    read = await client.patch(f"/api/notifications/{notification.id}/read", headers=auth_headers(planner))
    assert read.status_code == 404
    delete = await client.delete(f"/api/notifications/{notification.id}", headers=auth_headers(planner))
    assert delete.status_code == 404


@pytest.mark.asyncio
async def test_delete_notification(client: AsyncClient, db: AsyncSession, professional: User):
    notification = await notify(db, professional)
    response = await client.delete(f"/api/notifications/{notification.id}", headers=auth_headers(professional))
    assert response.status_code == 200
    inbox = await client.get("/api/notifications", headers=auth_headers(professional))
    assert inbox.json()["data"] == []


# ── Recording ─────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_channels_marked_pending_for_delivery(db: AsyncSession, professional: User):
    professional.fcm_token = "device-token"
    await db.commit()

    notification = await notify(db, professional, send_email=True)
    assert notification.email_status == DeliveryStatus.PENDING
    assert notification.push_status == DeliveryStatus.PENDING
    assert notification.priority == NotificationPriority.NORMAL


@pytest.mark.asyncio
async def test_missing_recipient_is_skipped_without_raising(db: AsyncSession):
    result = await NotificationService(db).send_notification(
        user_id=uuid.uuid4(),
        type=NotificationType.SYSTEM,
        title="Nobody home",
        message="...",
    )
    assert result is None


@pytest.mark.asyncio
async def test_inactive_recipient_is_skipped(db: AsyncSession, professional: User):
    professional.is_active = False
    await db.commit()
    assert await notify(db, professional) is None


def test_truncate_preview():
    assert truncate_preview("short") == "short"
    assert truncate_preview("x" * 150) == "x" * 100 + "..."


# ── Relay ─────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_relay_sends_email(db: AsyncSession, professional: User):
    notification = await notify(db, professional, "Booking Accepted", send_email=True)
    email = Recorder()

    stats = await relay_pending_notifications(db, channels(email=email))

    assert stats == {"processed": 1, "completed": 1, "pending": 0}
    assert notification.email_status == DeliveryStatus.SENT
    assert notification.delivered_at is not None
    to_email, to_name, subject, _ = email.calls[0]
    assert (to_email, to_name, subject) == (professional.email, professional.name, "Booking Accepted")


@pytest.mark.asyncio
async def test_relay_failure_counts_attempt_and_stays_pending(db: AsyncSession, professional: User):
    notification = await notify(db, professional, send_email=True)

    stats = await relay_pending_notifications(db, channels(email=Recorder(RuntimeError("smtp down"))))

    assert stats["pending"] == 1
    assert notification.email_status == DeliveryStatus.PENDING
    assert notification.delivery_attempts == 1
    assert "smtp down" in notification.last_error


@pytest.mark.asyncio
async def test_relay_gives_up_after_max_attempts(db: AsyncSession, professional: User):
    notification = await notify(db, professional, send_email=True)
    notification.delivery_attempts = 4
    await db.commit()

    await relay_pending_notifications(db, channels(email=Recorder(RuntimeError("bounced"))))

    assert notification.delivery_attempts == 5
    assert notification.email_status == DeliveryStatus.FAILED

    # Nothing left for the next run
    stats = await relay_pending_notifications(db, channels())
    assert stats["processed"] == 0


@pytest.mark.asyncio
async def test_push_skipped_when_token_removed(db: AsyncSession, professional: User):
    professional.fcm_token = "device-token"
    await db.commit()
    notification = await notify(db, professional)
    professional.fcm_token = None
    await db.commit()

    push = Recorder()
    await relay_pending_notifications(db, channels(push=push))

    assert notification.push_status == DeliveryStatus.SKIPPED
    assert push.calls == []


@pytest.mark.asyncio
async def test_open_circuit_leaves_channel_pending(db: AsyncSession, professional: User):
    notification = await notify(db, professional, send_email=True)
    bundle = channels()
    bundle.email_cb.open()

    stats = await relay_pending_notifications(db, bundle)

    assert stats["pending"] == 1
    assert notification.email_status == DeliveryStatus.PENDING
    assert notification.delivery_attempts == 0
    assert bundle.email.calls == []


# ── Reminders ─────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_reminder_scan(db: AsyncSession, planner: User, professional: User):
    soon = await make_event(db, planner, title="Tomorrow Gala", start_date=utcnow() + timedelta(hours=12))
    await make_event(db, planner, title="Far Future", start_date=in_days(5), end_date=in_days(5.5))
    other_planner = await make_planner(db)
    later_event = await make_event(db, other_planner, title="Booked Show")
    db.add(Booking(
        id=uuid.uuid4(),
        event_id=later_event.id,
        planner_id=other_planner.id,
        professional_id=professional.id,
        start_date=utcnow() + timedelta(hours=30),
        end_date=utcnow() + timedelta(hours=34),
        rate=600,
        currency="USD",
        status=BookingStatus.CONFIRMED,
    ))
    await db.commit()

    result = await NotificationService(db).send_reminder_notifications()
    assert result == {"events": 1, "bookings": 1}

    rows = (await db.execute(
        select(Notification.user_id, Notification.title).where(Notification.type == NotificationType.EVENT_REMINDER)
    )).all()
    assert sorted((str(u), t) for u, t in rows) == sorted([
        (str(planner.id), "Event Reminder"),
        (str(professional.id), "Upcoming Booking"),
        (str(other_planner.id), "Upcoming Service"),
    ])
    reminder = (await db.execute(
        select(Notification).where(Notification.user_id == planner.id)
    )).scalar_one()
    assert reminder.extra == {"eventId": str(soon.id)}
    assert reminder.email_status == DeliveryStatus.PENDING


# ── Failure isolation ─────────────────────────────────────────

@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_send(
    client: AsyncClient, db: AsyncSession, monkeypatch, planner: User, professional: User
):
    def broken(**kwargs):
        raise RuntimeError("notification store unavailable")

    monkeypatch.setattr("services.notification.service.Notification", broken)

    response = await client.post(
        "/api/messages/send",
        json={"recipientId": str(professional.id), "content": "Still delivered"},
        headers=auth_headers(planner),
    )
    assert response.status_code == 201
    assert await db.scalar(select(func.count(Notification.id))) == 0


def test_render_email_escapes_user_text():
    rendered = render_email("<script>alert(1)</script>", 'Tom & "Jerry" <b>hi</b>')
    assert "<script>" not in rendered
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in rendered
    assert "Tom &amp; &quot;Jerry&quot; &lt;b&gt;hi&lt;/b&gt;" in rendered
