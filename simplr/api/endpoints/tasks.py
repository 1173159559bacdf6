"""
Tasks API Endpoints

Personal task CRUD scoped to the caller, the sync entry point used at
session start, and a server-sent-events stream of change notifications.
Tasks that belong to a team are checked against the caller's team role.
"""

import json
from typing import Callable, List

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import StreamingResponse
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from simplr.api.dependencies import (
    CurrentUser,
    get_current_user,
    get_db,
    get_redis,
    get_redis_factory,
    get_task_store,
)
from simplr.core.exceptions import NotFoundError
from simplr.core.permissions import PermissionContext
from simplr.schemas.task import TaskCreate, TaskUpdate, TaskOut, TaskSyncRequest, TaskSyncResponse
from simplr.services.notifications import TaskChangeSubscription, notify_users, publish_tasks_changed
from simplr.services.reminders import prepare_reminder, prepare_reminder_update
from simplr.services.task_access import authorize_task_create, authorize_task_delete, authorize_task_update
from simplr.services.task_store import SQLAlchemyTaskStore
from simplr.services.task_sync import SyncAuthorizer, SyncPlan, sync_local_tasks
from simplr.services.organization_service import require_membership as require_organization_membership
from simplr.services.team_service import build_permission_context
from simplr.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

EVENT_STREAM_IDLE_SECONDS = 15.0


async def _context_for(db: AsyncSession, team_id, user_id: str) -> PermissionContext:
    if team_id is None:
        return PermissionContext(current_user_id=user_id)
    _, context = await build_permission_context(db, team_id, user_id)
    return context


async def _check_organization(db: AsyncSession, organization_id, user_id: str) -> None:
    if organization_id is not None:
        await require_organization_membership(db, organization_id, user_id)


async def _notify(redis: Redis, context: PermissionContext, user_id: str, reason: str, *extra) -> None:
    recipients = [user_id, *extra, *(member.user_id for member in context.team_members)]
    await notify_users(redis, recipients, reason)


# ==================== Task CRUD ====================

@router.get("/", response_model=List[TaskOut])
async def list_tasks(
    current_user: CurrentUser = Depends(get_current_user),
    store: SQLAlchemyTaskStore = Depends(get_task_store)
):
    """List the caller's tasks, newest first."""
    return await store.list_tasks(current_user.id)


@router.post("/", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: SQLAlchemyTaskStore = Depends(get_task_store),
    redis: Redis = Depends(get_redis)
):
    """
    Create a task.

    With a team_id the caller must belong to the team and the task becomes
    a team task; with an organization_id the caller must belong to the
    organization. An enabled reminder without a time defaults to one hour
    before the due date.
    """
    task_data = prepare_reminder(task_data)
    context = await _context_for(db, task_data.team_id, current_user.id)
    await _check_organization(db, task_data.organization_id, current_user.id)

    if task_data.team_id is not None:
        authorize_task_create(context, task_data)
        task = await store.create_team_task(task_data, task_data.team_id, current_user.id)
    else:
        task = await store.create_task(task_data, current_user.id)

    await _notify(redis, context, current_user.id, "created")
    return task


@router.delete("/completed")
async def clear_completed_tasks(
    current_user: CurrentUser = Depends(get_current_user),
    store: SQLAlchemyTaskStore = Depends(get_task_store),
    redis: Redis = Depends(get_redis)
):
    """Delete every completed task the caller owns."""
    deleted = await store.delete_completed(current_user.id)
    if deleted:
        await publish_tasks_changed(redis, current_user.id, "cleared")
    return {"deleted": deleted}


# ==================== Change stream ====================

@router.get("/events")
async def task_events(
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    redis_factory: Callable[[], Redis] = Depends(get_redis_factory)
):
    """
    Server-sent events for the caller's channel.

    Each event is a hint to re-fetch; idle periods send a comment line to
    keep proxies from closing the connection.
    """
    async def event_stream():
        redis = redis_factory()
        try:
            async with TaskChangeSubscription(redis, current_user.id) as subscription:
                yield ": connected\n\n"
                while not await request.is_disconnected():
                    event = await subscription.next_event(timeout=EVENT_STREAM_IDLE_SECONDS)
                    if event is None:
                        yield ": keep-alive\n\n"
                        continue
                    yield f"event: {event['type']}\ndata: {json.dumps(event)}\n\n"
        finally:
            await redis.aclose()
            logger.info("Event stream closed", user_id=current_user.id)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/{task_id}", response_model=TaskOut)
async def get_task(
    task_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    store: SQLAlchemyTaskStore = Depends(get_task_store)
):
    return await store.get_task(task_id, current_user.id)


@router.patch("/{task_id}", response_model=TaskOut)
async def update_task(
    task_id: int,
    task_update: TaskUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: SQLAlchemyTaskStore = Depends(get_task_store),
    redis: Redis = Depends(get_redis)
):
    """Update the given fields of one of the caller's tasks."""
    fields = task_update.model_dump(exclude_unset=True)
    task = await store.get_task(task_id, current_user.id)
    context = await _context_for(db, task.team_id, current_user.id)
    authorize_task_update(context, task, fields)
    await _check_organization(db, task.organization_id, current_user.id)
    fields = prepare_reminder_update(task, fields)

    updated = await store.update_task(task_id, fields, current_user.id)
    await _notify(redis, context, current_user.id, "updated", task.assigned_to, updated.assigned_to)
    return updated


@router.post("/{task_id}/toggle", response_model=TaskOut)
async def toggle_task(
    task_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: SQLAlchemyTaskStore = Depends(get_task_store),
    redis: Redis = Depends(get_redis)
):
    """Flip the completed flag."""
    task = await store.get_task(task_id, current_user.id)
    fields = {"completed": not task.completed}
    context = await _context_for(db, task.team_id, current_user.id)
    authorize_task_update(context, task, fields)
    await _check_organization(db, task.organization_id, current_user.id)

    updated = await store.update_task(task_id, fields, current_user.id)
    await _notify(redis, context, current_user.id, "completed", task.assigned_to)
    return updated


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: SQLAlchemyTaskStore = Depends(get_task_store),
    redis: Redis = Depends(get_redis)
):
    task = await store.get_task(task_id, current_user.id)
    context = await _context_for(db, task.team_id, current_user.id)
    authorize_task_delete(context, task)
    await _check_organization(db, task.organization_id, current_user.id)

    await store.delete_task(task_id, current_user.id)
    await _notify(redis, context, current_user.id, "deleted", task.assigned_to)
    return None


# ==================== Sync ====================

def _sync_authorizer(db: AsyncSession, user_id: str) -> SyncAuthorizer:
    contexts = {}

    async def context_for(team_id) -> PermissionContext:
        if team_id not in contexts:
            try:
                contexts[team_id] = await _context_for(db, team_id, user_id)
            except NotFoundError:
                contexts[team_id] = PermissionContext(current_user_id=user_id)
        return contexts[team_id]

    async def authorize(plan: SyncPlan) -> None:
        for data in plan.creates:
            if data.team_id is not None:
                authorize_task_create(await context_for(data.team_id), data)
            await _check_organization(db, data.organization_id, user_id)

        for update in plan.updates:
            remote = update.remote
            authorize_task_update(await context_for(remote.team_id), remote, update.fields)
            await _check_organization(db, remote.organization_id, user_id)

    return authorize


@router.post("/sync", response_model=TaskSyncResponse)
async def sync_tasks(
    sync_request: TaskSyncRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: SQLAlchemyTaskStore = Depends(get_task_store),
    redis: Redis = Depends(get_redis)
):
    """
    Reconcile the client's local tasks with the stored ones.

    Returns the merged task list. Every create and update the sync would
    make is checked against the caller's role in the task's team, read
    from the stored copy, before anything is written.
    """
    authorize = _sync_authorizer(db, current_user.id)
    result = await sync_local_tasks(store, sync_request.tasks, current_user.id, authorize=authorize)

    if result.created or result.updated:
        await publish_tasks_changed(redis, current_user.id, "synced")

    return TaskSyncResponse(
        tasks=result.tasks,
        created=result.created,
        updated=result.updated,
        kept=result.kept,
    )
