import asyncio

from simplr.api.dependencies import redis_client
from simplr.core.logging import capture_error
from simplr.db.session import SessionAsync, engine_internal
from simplr.mycelery.app import celery_app
from simplr.services.reminders import dispatch_due_reminders
from simplr.logging import get_logger

logger = get_logger("reminders")


async def _dispatch() -> int:
    redis = redis_client()
    try:
        async with SessionAsync() as db:
            return await dispatch_due_reminders(db, redis)
    finally:
        await redis.aclose()
        # Pooled connections belong to this run's event loop
        await engine_internal.dispose()


@celery_app.task(name="dispatch_reminders", max_retries=3)
def dispatch_reminders():
    """Publish due task reminders to their owners and assignees"""
    try:
        sent = asyncio.run(_dispatch())
    except Exception as e:
        logger.error(f"Failed to dispatch reminders: {e}")
        capture_error(e, context={"celery": {"task": "dispatch_reminders"}})
        # Back off exponentially: 1s, 2s, 4s
        raise dispatch_reminders.retry(exc=e, countdown=2 ** dispatch_reminders.request.retries)
    return {"sent": sent}
