"""
Celery application for background work.

Broker: Redis (external URL in debug mode)
Beat runs dispatch_reminders every REMINDER_SCAN_INTERVAL_SECONDS.
"""

from celery import Celery

from simplr.core.config import settings
from simplr.helpers.getters import isDebugMode

celery_app = Celery(
    "simplr",
    broker=settings.CELERY_BROKER_URL_EXTERNAL if isDebugMode() else settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["simplr.mycelery.worker"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    beat_schedule={
        "dispatch-due-reminders": {
            "task": "dispatch_reminders",
            "schedule": float(settings.REMINDER_SCAN_INTERVAL_SECONDS),
        },
    },
)
