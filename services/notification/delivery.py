"""
services/notification/delivery.py
Outbound delivery for notification rows: Resend email and FCM push,
each behind a pybreaker circuit breaker, plus the relay that drains
PENDING channels and records the outcome on the row.
"""

import asyncio
import html
import logging
from typing import Optional

from pybreaker import CircuitBreaker, CircuitBreakerError, CircuitBreakerListener
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from shared.models.models import DeliveryStatus, Notification, User
from shared.utils.dates import utcnow

logger = logging.getLogger(__name__)


class LogListener(CircuitBreakerListener):
    def state_change(self, cb, old_state, new_state):
        logger.warning(f"Circuit '{cb.name}' {old_state.name} -> {new_state.name}")


email_breaker = CircuitBreaker(fail_max=5, reset_timeout=60, name="resend", listeners=[LogListener()])
push_breaker = CircuitBreaker(fail_max=5, reset_timeout=60, name="fcm", listeners=[LogListener()])


# ── Channels ──────────────────────────────────────────────────

def render_email(title: str, body: str) -> str:
    """Title and body are user-supplied text, so both are escaped."""
    title, body = html.escape(title), html.escape(body)
    return f"""
    <div style="font-family: sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
        <div style="background: #4F46E5; padding: 20px; border-radius: 8px 8px 0 0; text-align: center;">
            <h1 style="color: white; margin: 0;">CollabBridge</h1>
        </div>
        <div style="background: white; padding: 24px; border: 1px solid #eee; border-radius: 0 0 8px 8px;">
            <h2 style="color: #333;">{title}</h2>
            <p style="color: #666; line-height: 1.6;">{body}</p>
            <p style="color: #999; font-size: 12px; margin-top: 24px;">
                <a href="{settings.FRONTEND_URL}/notifications">View in CollabBridge</a>
            </p>
        </div>
    </div>
    """


def send_email(to_email: str, to_name: str, subject: str, html_body: str) -> None:
    """Send transactional email via Resend. Raises on failure."""
    import resend

    resend.api_key = settings.RESEND_API_KEY
    resend.Emails.send({
        "from": f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>",
        "to": [f"{to_name} <{to_email}>"],
        "subject": subject,
        "html": html_body,
    })


def send_push(fcm_token: str, title: str, body: str, data: Optional[dict] = None) -> None:
    """Send a Firebase Cloud Messaging push. Raises on failure."""
    from firebase_admin import messaging

    from shared.utils.security import get_firebase_app

    message = messaging.Message(
        notification=messaging.Notification(title=title, body=body),
        data={k: str(v) for k, v in (data or {}).items()},
        token=fcm_token,
        android=messaging.AndroidConfig(priority="high"),
        apns=messaging.APNSConfig(
            payload=messaging.APNSPayload(aps=messaging.Aps(badge=1, sound="default"))
        ),
    )
    messaging.send(message, app=get_firebase_app())


class DeliveryChannels:
    """Injectable bundle of channel senders and their breakers."""

    def __init__(
        self,
        email=send_email,
        push=send_push,
        email_cb: CircuitBreaker = email_breaker,
        push_cb: CircuitBreaker = push_breaker,
    ):
        self.email = email
        self.push = push
        self.email_cb = email_cb
        self.push_cb = push_cb


# ── Relay ─────────────────────────────────────────────────────

async def _attempt(breaker: CircuitBreaker, func, *args) -> Optional[str]:
    """Run one channel send. Returns None on success or the error text."""
    try:
        await asyncio.to_thread(breaker.call, func, *args)
        return None
    except CircuitBreakerError:
        raise
    except Exception as e:
        return f"{breaker.name}: {e}"


async def deliver_notification(
    notification: Notification,
    user: User,
    channels: DeliveryChannels,
    max_attempts: int = settings.NOTIFICATION_MAX_DELIVERY_ATTEMPTS,
) -> bool:
    """
    Try every PENDING channel of one notification and record the result.
    Returns True once no channel is left PENDING.
    An open circuit leaves the channel PENDING without spending an attempt.
    """
    errors = []
    circuit_open = False

    if notification.email_status == DeliveryStatus.PENDING:
        try:
            error = await _attempt(
                channels.email_cb, channels.email,
                user.email, user.name, notification.title,
                render_email(notification.title, notification.message),
            )
        except CircuitBreakerError:
            circuit_open = True
        else:
            if error:
                errors.append(error)
            else:
                notification.email_status = DeliveryStatus.SENT

    if notification.push_status == DeliveryStatus.PENDING:
        if not user.fcm_token:
            notification.push_status = DeliveryStatus.SKIPPED
        else:
            try:
                error = await _attempt(
                    channels.push_cb, channels.push,
                    user.fcm_token, notification.title, notification.message,
                    {"notificationId": notification.id, "type": notification.type.value},
                )
            except CircuitBreakerError:
                circuit_open = True
            else:
                if error:
                    errors.append(error)
                else:
                    notification.push_status = DeliveryStatus.SENT

    if errors:
        notification.delivery_attempts += 1
        notification.last_error = "; ".join(errors)[:2000]
        logger.warning(
            f"Delivery attempt {notification.delivery_attempts} failed for "
            f"notification {notification.id}: {notification.last_error}"
        )
        if notification.delivery_attempts >= max_attempts:
            if notification.email_status == DeliveryStatus.PENDING:
                notification.email_status = DeliveryStatus.FAILED
            if notification.push_status == DeliveryStatus.PENDING:
                notification.push_status = DeliveryStatus.FAILED

    done = not notification.has_pending_delivery
    if done and not errors and not circuit_open:
        notification.delivered_at = utcnow()
    return done


async def relay_pending_notifications(
    db: AsyncSession,
    channels: Optional[DeliveryChannels] = None,
    batch_size: int = 100,
) -> dict:
    """Drain one batch of notifications with a PENDING channel."""
    channels = channels or DeliveryChannels()
    result = await db.execute(
        select(Notification)
        .where(or_(
            Notification.email_status == DeliveryStatus.PENDING,
            Notification.push_status == DeliveryStatus.PENDING,
        ))
        .order_by(Notification.created_at)
        .limit(batch_size)
    )
    notifications = result.scalars().all()

    stats = {"processed": len(notifications), "completed": 0, "pending": 0}
    for notification in notifications:
        user = await db.get(User, notification.user_id)
        if await deliver_notification(notification, user, channels):
            stats["completed"] += 1
        else:
            stats["pending"] += 1
    await db.commit()
    logger.info(f"Notification relay: {stats}")
    return stats
