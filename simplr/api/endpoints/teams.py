"""
Teams API Endpoints

Team lifecycle, join codes, members, invites, stats and team tasks.
Every mutation is re-checked by the permission engine in the service layer.
"""

from typing import List, Tuple

from fastapi import APIRouter, Depends, status
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from simplr.api.dependencies import CurrentUser, get_current_user, get_db, get_redis, get_task_store, get_team_context
from simplr.core import permissions
from simplr.core.exceptions import NotFoundError, PermissionDeniedError
from simplr.core.permissions import PermissionContext
from simplr.models.team import Team
from simplr.schemas.task import TaskOut, TaskUpdate, TeamTaskCreate
from simplr.schemas.team import TeamCreate, TeamUpdate, TeamWithMembers, TeamPreview, TeamJoin, TeamStats, TeamPermissions
from simplr.schemas.team_invite import TeamInviteCreate, TeamInviteAccept, TeamInviteOut
from simplr.schemas.team_member import TeamMemberRoleUpdate, TeamMemberOut
from simplr.services import team_service
from simplr.services.notifications import notify_users
from simplr.services.reminders import prepare_reminder, prepare_reminder_update
from simplr.services.task_access import authorize_task_create, authorize_task_delete, authorize_task_update
from simplr.services.task_store import SQLAlchemyTaskStore

router = APIRouter()


async def _notify_team(redis: Redis, context: PermissionContext, reason: str, *extra) -> None:
    await notify_users(redis, [*extra, *(member.user_id for member in context.team_members)], reason)


# ==================== Team CRUD ====================

@router.post("/", response_model=TeamWithMembers, status_code=status.HTTP_201_CREATED)
async def create_team(
    team_data: TeamCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a new team.

    The creator becomes the owner. Guest creators get no membership row.
    """
    return await team_service.create_team(db, team_data, current_user.id)


@router.get("/", response_model=List[TeamWithMembers])
async def list_my_teams(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List teams the caller belongs to, with their role in each."""
    return await team_service.get_user_teams(db, current_user.id)


@router.get("/preview/{join_code}", response_model=TeamPreview)
async def preview_team(
    join_code: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    preview = await team_service.get_team_preview(db, join_code)
    if preview is None:
        raise NotFoundError("Invalid join code or team not found")
    return preview


@router.post("/join", response_model=TeamWithMembers)
async def join_team(
    join_data: TeamJoin,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await team_service.join_team(db, join_data.join_code, current_user.id)


@router.post("/invites/accept", response_model=TeamWithMembers)
async def accept_invite(
    invite_data: TeamInviteAccept,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await team_service.accept_invite(db, invite_data.join_code, current_user.id)


@router.get("/{team_id}", response_model=TeamWithMembers)
async def get_team(
    team_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get a team the caller belongs to."""
    return await team_service.get_team_for_member(db, team_id, current_user.id)


@router.patch("/{team_id}", response_model=TeamWithMembers)
async def update_team(
    team_id: str,
    team_update: TeamUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Update a team.

    Requires owner or admin role.
    """
    return await team_service.update_team(db, team_id, team_update, current_user.id)


@router.delete("/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_team(
    team_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a team with its members, invites and tasks.

    Only the owner can delete a team.
    """
    await team_service.delete_team(db, team_id, current_user.id)
    return None


@router.post("/{team_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave_team(
    team_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await team_service.leave_team(db, team_id, current_user.id)
    return None


@router.post("/{team_id}/join-code", response_model=TeamWithMembers)
async def regenerate_join_code(
    team_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Replace the join code; the old one stops working."""
    return await team_service.regenerate_join_code(db, team_id, current_user.id)


@router.get("/{team_id}/stats", response_model=TeamStats)
async def get_team_stats(
    team_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await team_service.get_team_stats(db, team_id, current_user.id)


@router.get("/{team_id}/permissions", response_model=TeamPermissions)
async def get_team_permissions(
    team_context: Tuple[Team, PermissionContext] = Depends(get_team_context)
):
    """
    Permission flags for the caller.

    Non-members get a response with every flag false.
    """
    _, context = team_context
    return permissions.permission_summary(context)


# ==================== Team Members ====================

@router.get("/{team_id}/members", response_model=List[TeamMemberOut])
async def list_team_members(
    team_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await team_service.list_members_for(db, team_id, current_user.id)


@router.patch("/{team_id}/members/{user_id}", response_model=TeamMemberOut)
async def update_member_role(
    team_id: str,
    user_id: str,
    role_update: TeamMemberRoleUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Change a member's role.

    Owners cannot change their own role. Admins cannot touch owners or
    promote anyone to owner.
    """
    return await team_service.update_member_role(db, team_id, user_id, role_update.role, current_user.id)


@router.delete("/{team_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_team_member(
    team_id: str,
    user_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await team_service.remove_member(db, team_id, user_id, current_user.id)
    return None


# ==================== Invites ====================

@router.post("/{team_id}/invites", response_model=TeamInviteOut, status_code=status.HTTP_201_CREATED)
async def create_invite(
    team_id: str,
    invite_data: TeamInviteCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await team_service.create_invite(db, team_id, current_user.id, invite_data.email)


# ==================== Team Tasks ====================

@router.get("/{team_id}/tasks", response_model=List[TaskOut])
async def list_team_tasks(
    team_id: str,
    team_context: Tuple[Team, PermissionContext] = Depends(get_team_context),
    store: SQLAlchemyTaskStore = Depends(get_task_store)
):
    _, context = team_context
    if not permissions.can_view_team(context):
        raise PermissionDeniedError("You are not a member of this team")
    return await store.list_team_tasks(team_id)


@router.post("/{team_id}/tasks", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
async def create_team_task(
    team_id: str,
    task_data: TeamTaskCreate,
    current_user: CurrentUser = Depends(get_current_user),
    team_context: Tuple[Team, PermissionContext] = Depends(get_team_context),
    store: SQLAlchemyTaskStore = Depends(get_task_store),
    redis: Redis = Depends(get_redis)
):
    """
    Create a task owned by the caller and shared with the team.

    Any member may create tasks; only owners and admins may assign them.
    """
    _, context = team_context
    data = prepare_reminder(task_data.for_team(team_id))
    authorize_task_create(context, data)

    task = await store.create_team_task(data, team_id, current_user.id)
    await _notify_team(redis, context, "created")
    return task


@router.patch("/{team_id}/tasks/{task_id}", response_model=TaskOut)
async def update_team_task(
    team_id: str,
    task_id: int,
    task_update: TaskUpdate,
    team_context: Tuple[Team, PermissionContext] = Depends(get_team_context),
    store: SQLAlchemyTaskStore = Depends(get_task_store),
    redis: Redis = Depends(get_redis)
):
    """
    Update a team task.

    Assignees and managers may edit; only managers may reassign.
    """
    _, context = team_context
    if not permissions.can_view_team(context):
        raise PermissionDeniedError("You are not a member of this team")

    fields = task_update.model_dump(exclude_unset=True)
    task = await store.get_team_task(task_id, team_id)
    authorize_task_update(context, task, fields)
    fields = prepare_reminder_update(task, fields)

    updated = await store.update_team_task(task_id, fields, team_id)
    await _notify_team(redis, context, "updated", task.user_id)
    return updated


@router.post("/{team_id}/tasks/{task_id}/toggle", response_model=TaskOut)
async def toggle_team_task(
    team_id: str,
    task_id: int,
    team_context: Tuple[Team, PermissionContext] = Depends(get_team_context),
    store: SQLAlchemyTaskStore = Depends(get_task_store),
    redis: Redis = Depends(get_redis)
):
    _, context = team_context
    if not permissions.can_view_team(context):
        raise PermissionDeniedError("You are not a member of this team")

    task = await store.get_team_task(task_id, team_id)
    fields = {"completed": not task.completed}
    authorize_task_update(context, task, fields)

    updated = await store.update_team_task(task_id, fields, team_id)
    await _notify_team(redis, context, "completed", task.user_id)
    return updated


@router.delete("/{team_id}/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_team_task(
    team_id: str,
    task_id: int,
    team_context: Tuple[Team, PermissionContext] = Depends(get_team_context),
    store: SQLAlchemyTaskStore = Depends(get_task_store),
    redis: Redis = Depends(get_redis)
):
    _, context = team_context
    if not permissions.can_view_team(context):
        raise PermissionDeniedError("You are not a member of this team")

    task = await store.get_team_task(task_id, team_id)
    authorize_task_delete(context, task)

    await store.delete_team_task(task_id, team_id)
    await _notify_team(redis, context, "deleted", task.user_id)
    return None
