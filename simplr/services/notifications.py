"""
Per-user change notifications over Redis pub/sub.

Writers publish a small JSON event on "tasks:{user_id}" whenever a user's
task set changes; readers re-fetch on receipt. Events carry no task data.
"""

import asyncio
import json
from typing import Any, Dict, Iterable, Optional

from redis.asyncio import Redis

from simplr.logging import get_logger

logger = get_logger(__name__)

TASKS_CHANGED = "tasks_changed"
REMINDER = "reminder"


def user_channel(user_id: str) -> str:
    return f"tasks:{user_id}"


async def publish_event(redis: Redis, user_id: str, event: Dict[str, Any]) -> int:
    """Publish an event to a user's channel; returns the receiver count"""
    payload = json.dumps({"user_id": user_id, **event})
    return await redis.publish(user_channel(user_id), payload)


async def publish_tasks_changed(redis: Redis, user_id: str, reason: str) -> int:
    receivers = await publish_event(redis, user_id, {"type": TASKS_CHANGED, "reason": reason})
    logger.info("Published task change", user_id=user_id, reason=reason, receivers=receivers)
    return receivers


async def notify_users(redis: Redis, user_ids: Iterable[Optional[str]], reason: str) -> None:
    """Publish one tasks_changed event per distinct user"""
    for user_id in sorted({u for u in user_ids if u}):
        await publish_tasks_changed(redis, user_id, reason)


async def publish_reminder(redis: Redis, user_id: str, task_id: int, title: str,
                           description: Optional[str] = None) -> int:
    return await publish_event(redis, user_id, {
        "type": REMINDER,
        "task_id": task_id,
        "title": f"Reminder: {title}",
        "body": description or "You have a task reminder",
    })


class TaskChangeSubscription:
    """
    Async context manager listening on one user's channel.

    Usage:
        async with TaskChangeSubscription(redis, user_id) as subscription:
            event = await subscription.next_event(timeout=15)
    """

    def __init__(self, redis: Redis, user_id: str):
        self.redis = redis
        self.user_id = user_id
        self.pubsub = None

    async def __aenter__(self) -> "TaskChangeSubscription":
        self.pubsub = self.redis.pubsub()
        await self.pubsub.subscribe(user_channel(self.user_id))
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.pubsub.unsubscribe(user_channel(self.user_id))
        await self.pubsub.aclose()

    async def next_event(self, timeout: float = 1.0) -> Optional[Dict[str, Any]]:
        """Wait up to timeout seconds for the next event, None when idle"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return None
            # Subscribe confirmations come back as None and are skipped
            message = await self.pubsub.get_message(ignore_subscribe_messages=True, timeout=remaining)
            if message is not None and message.get("type") == "message":
                break
        data = message["data"]
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return json.loads(data)
