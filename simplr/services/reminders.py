"""
Task reminders: default times and dispatch of due reminders.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from simplr.core.exceptions import ValidationError
from simplr.helpers.dates import as_utc, utcnow
from simplr.schemas.task import TaskCreate
from simplr.services.notifications import publish_reminder
from simplr.services.task_store import SQLAlchemyTaskStore
from simplr.logging import get_logger

logger = get_logger(__name__)

REMINDER_LEAD_TIME = timedelta(hours=1)


def default_reminder_time(due_date: Optional[datetime], now: Optional[datetime] = None) -> datetime:
    """One hour before the due date, or one hour from now without one"""
    if due_date is not None:
        return as_utc(due_date) - REMINDER_LEAD_TIME
    return (now or utcnow()) + REMINDER_LEAD_TIME


def is_valid_reminder_time(reminder_datetime: datetime, now: Optional[datetime] = None) -> bool:
    return as_utc(reminder_datetime) > (now or utcnow())


def prepare_reminder(data: TaskCreate, now: Optional[datetime] = None) -> TaskCreate:
    """
    Fill in a default reminder time for new tasks and reject past ones.

    Raises:
        ValidationError: If an enabled reminder is not in the future
    """
    if not data.reminder_enabled:
        return data
    now = now or utcnow()
    if data.reminder_datetime is None:
        return data.model_copy(update={"reminder_datetime": default_reminder_time(data.due_date, now)})
    if not is_valid_reminder_time(data.reminder_datetime, now):
        raise ValidationError("Reminder time must be in the future")
    return data


def prepare_reminder_update(task: Any, fields: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Apply the reminder rules of prepare_reminder to a partial update.

    Only updates that touch reminder_enabled or reminder_datetime while the
    reminder ends up enabled are affected. An explicit time must be in the
    future; enabling without a usable time gets the default. A new time
    clears reminder_sent.

    Raises:
        ValidationError: If an explicit reminder time is not in the future
    """
    if "reminder_enabled" not in fields and "reminder_datetime" not in fields:
        return fields
    if not fields.get("reminder_enabled", task.reminder_enabled):
        return fields

    now = now or utcnow()
    fields = dict(fields)
    if fields.get("reminder_datetime") is not None:
        if not is_valid_reminder_time(fields["reminder_datetime"], now):
            raise ValidationError("Reminder time must be in the future")
    else:
        stored = None if "reminder_datetime" in fields else task.reminder_datetime
        if stored is None or not is_valid_reminder_time(stored, now):
            fields["reminder_datetime"] = default_reminder_time(fields.get("due_date", task.due_date), now)

    new_time = fields.get("reminder_datetime")
    if new_time is not None and (task.reminder_datetime is None or as_utc(new_time) != as_utc(task.reminder_datetime)):
        fields["reminder_sent"] = False
    return fields


async def dispatch_due_reminders(db: AsyncSession, redis: Redis,
                                 now: Optional[datetime] = None) -> int:
    """
    Notify owners (and assignees) of reminders that are due and mark them sent.

    Returns:
        Number of reminders dispatched
    """
    store = SQLAlchemyTaskStore(db)
    due = await store.list_due_reminders(now)
    if not due:
        return 0

    for task in due:
        recipients = {task.user_id}
        if task.assigned_to:
            recipients.add(task.assigned_to)
        for recipient in recipients:
            await publish_reminder(redis, recipient, task.id, task.title, task.description)

    await store.mark_reminders_sent(due)
    logger.info("Dispatched reminders", count=len(due))
    return len(due)
