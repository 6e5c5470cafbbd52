"""
tasks/notification_tasks.py
Celery tasks for the notification outbox.

The tasks are safe to run twice: the relay only touches channels still
PENDING, the reminder scan is a read-then-notify pass, and calendar
reminders record the occurrence they fired for.

Each run opens its own Database with NullPool so no connection outlives
the event loop created by asyncio.run.
"""

import asyncio
import logging

from config.database import Database
from services.calendar.service import CalendarService
from services.notification.delivery import relay_pending_notifications as relay
from services.notification.service import NotificationService
from tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _relay(batch_size: int) -> dict:
    database = Database.from_settings(null_pool=True)
    try:
        async with database.session() as db:
            return await relay(db, batch_size=batch_size)
    finally:
        await database.close()


async def _reminders() -> dict:
    database = Database.from_settings(null_pool=True)
    try:
        async with database.session() as db:
            return await NotificationService(db).send_reminder_notifications()
    finally:
        await database.close()


async def _calendar_reminders() -> dict:
    database = Database.from_settings(null_pool=True)
    try:
        async with database.session() as db:
            return await CalendarService(db).send_due_reminders()
    finally:
        await database.close()


@celery_app.task(bind=True, max_retries=3, default_retry_delay=30)
def relay_pending_notifications(self, batch_size: int = 100):
    """Beat task: every minute. Delivers PENDING email and push channels."""
    try:
        return asyncio.run(_relay(batch_size))
    except Exception as e:
        logger.exception(f"relay_pending_notifications failed: {e}")
        raise self.retry(exc=e, countdown=30 * (2 ** self.request.retries))


@celery_app.task(bind=True, max_retries=3)
def send_reminder_notifications(self):
    """
    Beat task: runs every hour.
    PUBLISHED events starting within 24h remind their creator; CONFIRMED
    bookings starting within 48h remind both parties.
    """
    try:
        return asyncio.run(_reminders())
    except Exception as e:
        logger.exception(f"send_reminder_notifications failed: {e}")
        raise self.retry(exc=e, countdown=60)


@celery_app.task(bind=True, max_retries=3)
def send_calendar_reminders(self):
    """Beat task: every minute. Fires calendar reminders whose lead time has arrived."""
    try:
        return asyncio.run(_calendar_reminders())
    except Exception as e:
        logger.exception(f"send_calendar_reminders failed: {e}")
        raise self.retry(exc=e, countdown=60)
