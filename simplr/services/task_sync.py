"""
Reconciles a client's local task list with the tasks held in the store.

Local tasks whose id the store does not know are created; local tasks that
the store knows are pushed only when their updated_at is strictly newer
than the stored copy (last write wins, ties keep the stored copy). Stored
tasks the client never mentioned are returned untouched.

The full set of writes is planned first and may be refused as a whole by
an authorizer before anything is written. Calls are then issued one at a
time in list order. Any failure aborts the sync.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from simplr.core.config import settings
from simplr.core.exceptions import RemoteStoreError, SimplrError
from simplr.helpers.dates import as_utc
from simplr.logging import get_logger
from simplr.schemas.task import LocalTask, TaskCreate, TaskOut
from simplr.services.task_store import TaskStore

logger = get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Server-managed fields never sent back on create or update
_SERVER_FIELDS = {"id", "user_id", "created_at", "updated_at"}
# Team and organization placement is fixed at creation
_SYNC_UPDATE_EXCLUDE = _SERVER_FIELDS | {"team_id", "organization_id", "is_team_task", "assigned_to"}


@dataclass
class SyncResult:
    tasks: List[TaskOut] = field(default_factory=list)
    created: int = 0
    updated: int = 0
    kept: int = 0


def normalize_timestamp(value: Optional[datetime]) -> datetime:
    """Missing timestamps sort as the epoch; naive ones are read as UTC"""
    if value is None:
        return EPOCH
    return as_utc(value)


def is_newer(local: LocalTask, remote: TaskOut) -> bool:
    return normalize_timestamp(local.updated_at) > normalize_timestamp(remote.updated_at)


def _latest_by_id(tasks: Iterable[LocalTask]) -> Dict[int, LocalTask]:
    """Collapse repeated ids, keeping the most recent copy (later wins ties)"""
    latest: Dict[int, LocalTask] = {}
    for task in tasks:
        current = latest.get(task.id)
        if current is None or normalize_timestamp(task.updated_at) >= normalize_timestamp(current.updated_at):
            latest[task.id] = task
    return latest


@dataclass
class PlannedUpdate:
    remote: TaskOut
    fields: Dict[str, Any]


@dataclass
class SyncPlan:
    """Store writes a sync intends to make, computed before any write"""
    remote_tasks: List[TaskOut]
    creates: List[TaskCreate] = field(default_factory=list)
    updates: List[PlannedUpdate] = field(default_factory=list)
    kept: List[TaskOut] = field(default_factory=list)


SyncAuthorizer = Callable[[SyncPlan], Awaitable[None]]


def plan_sync(local_tasks: List[LocalTask], remote_tasks: List[TaskOut]) -> SyncPlan:
    remote_by_id = {task.id: task for task in remote_tasks}
    plan = SyncPlan(remote_tasks=remote_tasks)

    for task in local_tasks:
        if task.id not in remote_by_id:
            plan.creates.append(TaskCreate(**task.model_dump(exclude=_SERVER_FIELDS)))

    known_tasks = _latest_by_id(task for task in local_tasks if task.id in remote_by_id)
    for task_id, local in known_tasks.items():
        remote = remote_by_id[task_id]
        if is_newer(local, remote):
            plan.updates.append(PlannedUpdate(remote, local.model_dump(exclude=_SYNC_UPDATE_EXCLUDE)))
        else:
            plan.kept.append(remote)
    return plan


async def sync_local_tasks(
    store: TaskStore,
    local_tasks: List[LocalTask],
    user_id: str,
    authorize: Optional[SyncAuthorizer] = None,
) -> SyncResult:
    """
    Push local changes to the store and return the merged task list.

    Args:
        store: Remote task store
        local_tasks: Tasks held by the client
        user_id: Owner the store calls are scoped to
        authorize: Awaited with the full plan before the first write; raising
            refuses the whole sync

    Returns:
        SyncResult with created tasks first, then synced or kept tasks,
        then stored tasks the client did not mention

    Raises:
        RemoteStoreError: When any store call fails; nothing is returned
        PermissionDeniedError: When the authorizer refuses the plan
    """
    started = time.monotonic()
    logger.info("Task sync started", user_id=user_id, local_count=len(local_tasks))

    try:
        remote_tasks = await store.list_tasks(user_id)
        plan = plan_sync(local_tasks, remote_tasks)

        if authorize is not None:
            await authorize(plan)

        result = SyncResult()

        for data in plan.creates:
            result.tasks.append(await store.create_task(data, user_id))
            result.created += 1

        # Synced and kept tasks keep the order the client listed them in
        written = {}
        for update in plan.updates:
            written[update.remote.id] = await store.update_task(update.remote.id, update.fields, user_id)
            result.updated += 1
        for remote in plan.kept:
            written[remote.id] = remote
            result.kept += 1
        seen = set()
        for task in local_tasks:
            if task.id in written and task.id not in seen:
                seen.add(task.id)
                result.tasks.append(written[task.id])

        local_ids = {task.id for task in local_tasks}
        result.tasks.extend(task for task in remote_tasks if task.id not in local_ids)
    except SimplrError:
        logger.error("Task sync aborted", user_id=user_id)
        raise
    except Exception as e:
        logger.error("Task sync aborted", user_id=user_id, error=str(e))
        raise RemoteStoreError("Failed to sync tasks") from e

    duration = time.monotonic() - started
    if duration > settings.SYNC_SLOW_THRESHOLD_SECONDS:
        logger.slow("Task sync was slow", duration=duration,
                    threshold=settings.SYNC_SLOW_THRESHOLD_SECONDS, user_id=user_id)

    logger.great(
        "Task sync complete",
        user_id=user_id,
        created=result.created,
        updated=result.updated,
        kept=result.kept,
        total=len(result.tasks),
    )
    return result
