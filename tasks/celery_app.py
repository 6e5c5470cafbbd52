"""
tasks/celery_app.py
Celery application instance shared by all task modules.

Workers are started with:
    celery -A tasks.celery_app worker --loglevel=info --concurrency=4

Beat scheduler (periodic tasks):
    celery -A tasks.celery_app beat --loglevel=info
"""

from celery import Celery
from celery.schedules import crontab

from config.settings import settings

celery_app = Celery(
    "collabbridge",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["tasks.notification_tasks", "tasks.contract_tasks"],
)

# ── Configuration ─────────────────────────────────────────────

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Acknowledge after execution so a dead worker does not lose the run
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    result_expires=3600,
    task_max_retries=3,

    task_routes={
        "tasks.notification_tasks.*": {"queue": "notifications"},
    },

    worker_prefetch_multiplier=1,
)

# ── Periodic Tasks (Beat Schedule) ────────────────────────────

celery_app.conf.beat_schedule = {
    # Drain PENDING email/push channels of the notification outbox
    "relay-pending-notifications": {
        "task": "tasks.notification_tasks.relay_pending_notifications",
        "schedule": 60,
    },

    # Events starting within 24h, confirmed bookings within 48h
    "send-reminder-notifications": {
        "task": "tasks.notification_tasks.send_reminder_notifications",
        "schedule": crontab(minute=0),
    },

    # Calendar reminders fire within a minute of their lead time
    "send-calendar-reminders": {
        "task": "tasks.notification_tasks.send_calendar_reminders",
        "schedule": 60,
    },

    # Open contracts past expires_at become EXPIRED
    "expire-contracts": {
        "task": "tasks.contract_tasks.expire_contracts",
        "schedule": crontab(minute=15),
    },
}
