"""
Team management: creation, join codes, membership, invites and stats.

Every mutating operation re-checks the permission engine against a context
built from the stored member list, whatever the caller already checked.
"""

import secrets
import string
from datetime import timedelta
from typing import List, Optional, Tuple

from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from simplr.core import permissions
from simplr.core.config import settings
from simplr.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from simplr.core.permissions import PermissionContext, TeamRole
from simplr.helpers.dates import as_utc, utcnow
from simplr.helpers.getters import isGuestUser
from simplr.models.task import Task
from simplr.models.team import Team
from simplr.models.team_invite import TeamInvite
from simplr.models.team_member import TeamMember
from simplr.schemas.team import TeamCreate, TeamUpdate, TeamOut, TeamWithMembers, TeamPreview, TeamStats
from simplr.services.guards import commit_or_raise, require
from simplr.logging import get_logger

logger = get_logger(__name__)

JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits
JOIN_CODE_ATTEMPTS = 10

TEAM_NAME_MIN = 2
TEAM_NAME_MAX = 100
TEAM_DESCRIPTION_MAX = 500


# ==================== Helpers ====================

def validate_team_fields(
    name: Optional[str] = None,
    description: Optional[str] = None,
    max_members: Optional[int] = None,
    require_name: bool = True,
) -> None:
    """
    Check team fields before anything is written.

    Raises:
        ValidationError: On the first invalid field
    """
    if name is not None or require_name:
        if not name or len(name.strip()) < TEAM_NAME_MIN:
            raise ValidationError(f"Team name must be at least {TEAM_NAME_MIN} characters long")
        if len(name.strip()) > TEAM_NAME_MAX:
            raise ValidationError(f"Team name must be less than {TEAM_NAME_MAX} characters")

    if description and len(description) > TEAM_DESCRIPTION_MAX:
        raise ValidationError(f"Team description must be less than {TEAM_DESCRIPTION_MAX} characters")

    if max_members is not None and not (1 <= max_members <= settings.TEAM_MAX_MEMBERS_LIMIT):
        raise ValidationError(f"Max members must be between 1 and {settings.TEAM_MAX_MEMBERS_LIMIT}")


def generate_join_code(length: Optional[int] = None) -> str:
    length = length or settings.JOIN_CODE_LENGTH
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(length))


async def _unique_join_code(db: AsyncSession) -> str:
    for _ in range(JOIN_CODE_ATTEMPTS):
        code = generate_join_code()
        team_hit = await db.execute(select(Team.id).filter(Team.join_code == code))
        invite_hit = await db.execute(select(TeamInvite.id).filter(TeamInvite.join_code == code))
        if team_hit.first() is None and invite_hit.first() is None:
            return code
    raise ConflictError("Could not generate a unique join code")


async def count_members(db: AsyncSession, team_id: str) -> int:
    result = await db.execute(
        select(func.count(TeamMember.id)).filter(TeamMember.team_id == team_id)
    )
    return result.scalar() or 0


def _with_members(team: Team, member_count: int, user_role: Optional[TeamRole]) -> TeamWithMembers:
    data = TeamOut.model_validate(team).model_dump()
    return TeamWithMembers(**data, member_count=member_count, user_role=user_role)


async def get_team(db: AsyncSession, team_id: str) -> Team:
    result = await db.execute(select(Team).filter(Team.id == team_id))
    team = result.scalar_one_or_none()
    if team is None:
        raise NotFoundError("Team not found")
    return team


async def get_team_members(db: AsyncSession, team_id: str) -> List[TeamMember]:
    result = await db.execute(
        select(TeamMember)
        .filter(TeamMember.team_id == team_id)
        .order_by(TeamMember.joined_at)
    )
    return list(result.scalars().all())


async def get_membership(db: AsyncSession, team_id: str, user_id: str) -> Optional[TeamMember]:
    result = await db.execute(
        select(TeamMember).filter(
            TeamMember.team_id == team_id,
            TeamMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def build_permission_context(
    db: AsyncSession,
    team_id: str,
    user_id: str,
) -> Tuple[Team, PermissionContext]:
    """
    Load a team and its members and derive the caller's permission context.

    Raises:
        NotFoundError: If the team does not exist
    """
    team = await get_team(db, team_id)
    members = await get_team_members(db, team_id)
    return team, permissions.get_permission_context(user_id, team, members)


# ==================== Team lifecycle ====================

async def create_team(db: AsyncSession, data: TeamCreate, user_id: str) -> TeamWithMembers:
    """
    Create a team with a fresh join code.

    The creator becomes its only owner. Guest creators are not durable
    accounts: the team records no creator and no membership row.
    """
    if not user_id:
        raise ValidationError("User ID is required")
    validate_team_fields(data.name, data.description, data.max_members)

    is_guest = isGuestUser(user_id)
    team = Team(
        name=data.name.strip(),
        description=data.description.strip() if data.description and data.description.strip() else None,
        avatar_url=data.avatar_url,
        join_code=await _unique_join_code(db),
        max_members=data.max_members or settings.TEAM_DEFAULT_MAX_MEMBERS,
        created_by=None if is_guest else user_id,
        status="active",
    )
    db.add(team)

    if not is_guest:
        await db.flush()
        db.add(TeamMember(team_id=team.id, user_id=user_id, role=TeamRole.OWNER.value))
    else:
        logger.info("Skipping owner membership for guest creator", user_id=user_id)

    await commit_or_raise(db, "create team")
    await db.refresh(team)

    logger.great("Team created", team_id=team.id, guest=is_guest)
    if is_guest:
        return _with_members(team, 0, None)
    return _with_members(team, 1, TeamRole.OWNER)


async def _find_active_team_by_code(db: AsyncSession, join_code: str) -> Optional[Team]:
    result = await db.execute(
        select(Team).filter(
            Team.join_code == join_code.strip().upper(),
            Team.status == "active",
        )
    )
    return result.scalar_one_or_none()


async def get_team_preview(db: AsyncSession, join_code: str) -> Optional[TeamPreview]:
    team = await _find_active_team_by_code(db, join_code)
    if team is None:
        return None
    return TeamPreview(
        id=team.id,
        name=team.name,
        description=team.description,
        member_count=await count_members(db, team.id),
        max_members=team.max_members,
        created_at=team.created_at,
    )


async def _add_member(
    db: AsyncSession,
    team: Team,
    user_id: str,
    invited_by: Optional[str] = None,
) -> int:
    if await get_membership(db, team.id, user_id) is not None:
        raise ConflictError("You are already a member of this team")

    member_count = await count_members(db, team.id)
    if member_count >= team.max_members:
        raise ConflictError("Team is at maximum capacity")

    db.add(TeamMember(
        team_id=team.id,
        user_id=user_id,
        role=TeamRole.MEMBER.value,
        invited_by=invited_by,
    ))
    return member_count + 1


async def join_team(db: AsyncSession, join_code: str, user_id: str) -> TeamWithMembers:
    team = await _find_active_team_by_code(db, join_code)
    if team is None:
        raise NotFoundError("Invalid join code or team not found")

    member_count = await _add_member(db, team, user_id)
    await commit_or_raise(db, "join team")

    logger.info("User joined team", team_id=team.id, user_id=user_id)
    return _with_members(team, member_count, TeamRole.MEMBER)


async def get_user_teams(db: AsyncSession, user_id: str) -> List[TeamWithMembers]:
    result = await db.execute(
        select(Team, TeamMember.role)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .filter(TeamMember.user_id == user_id)
        .order_by(Team.created_at)
    )

    teams = []
    for team, role in result.all():
        teams.append(_with_members(team, await count_members(db, team.id), TeamRole(role)))
    return teams


async def get_team_for_member(db: AsyncSession, team_id: str, user_id: str) -> TeamWithMembers:
    team, context = await build_permission_context(db, team_id, user_id)
    require(permissions.can_view_team(context), "You are not a member of this team")
    return _with_members(team, len(context.team_members), context.current_user_role)


async def update_team(db: AsyncSession, team_id: str, data: TeamUpdate, user_id: str) -> TeamWithMembers:
    team, context = await build_permission_context(db, team_id, user_id)
    require(permissions.can_update_team(context), "Insufficient permissions to update team")

    update_data = data.model_dump(exclude_unset=True)
    validate_team_fields(
        update_data.get("name"),
        update_data.get("description"),
        update_data.get("max_members"),
        require_name="name" in update_data,
    )

    if "name" in update_data:
        update_data["name"] = update_data["name"].strip()
    for field, value in update_data.items():
        setattr(team, field, value)

    await commit_or_raise(db, "update team")
    await db.refresh(team)
    return _with_members(team, len(context.team_members), context.current_user_role)


async def _delete_team_rows(db: AsyncSession, team_id: str) -> None:
    # Explicit so the cascade does not depend on the backend enforcing FKs
    await db.execute(delete(Task).where(Task.team_id == team_id))
    await db.execute(delete(TeamInvite).where(TeamInvite.team_id == team_id))
    await db.execute(delete(TeamMember).where(TeamMember.team_id == team_id))
    await db.execute(delete(Team).where(Team.id == team_id))


async def delete_team(db: AsyncSession, team_id: str, user_id: str) -> None:
    _, context = await build_permission_context(db, team_id, user_id)
    require(permissions.can_delete_team(context), "Only team owners can delete teams")

    await _delete_team_rows(db, team_id)
    await commit_or_raise(db, "delete team")
    logger.warning("Team deleted", team_id=team_id, user_id=user_id)


async def leave_team(db: AsyncSession, team_id: str, user_id: str) -> None:
    """
    Leave a team.

    An owner may only leave when alone, which deletes the team.
    """
    _, context = await build_permission_context(db, team_id, user_id)
    if context.current_user_role is None:
        raise NotFoundError("You are not a member of this team")

    if not permissions.can_leave_team(context):
        if len(context.team_members) > 1:
            raise PermissionDeniedError("Cannot leave team as owner. Transfer ownership or delete the team.")
        await _delete_team_rows(db, team_id)
        await commit_or_raise(db, "delete team")
        logger.warning("Sole owner left, team deleted", team_id=team_id, user_id=user_id)
        return

    await db.execute(
        delete(TeamMember).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
    )
    await commit_or_raise(db, "leave team")
    logger.info("User left team", team_id=team_id, user_id=user_id)


async def regenerate_join_code(db: AsyncSession, team_id: str, user_id: str) -> TeamWithMembers:
    team, context = await build_permission_context(db, team_id, user_id)
    require(permissions.can_manage_settings(context), "Insufficient permissions to change the join code")

    team.join_code = await _unique_join_code(db)
    await commit_or_raise(db, "regenerate join code")
    await db.refresh(team)
    return _with_members(team, len(context.team_members), context.current_user_role)


# ==================== Members ====================

async def list_members_for(db: AsyncSession, team_id: str, user_id: str) -> List[TeamMember]:
    _, context = await build_permission_context(db, team_id, user_id)
    require(permissions.can_view_team(context), "You don't have permission to view team members")
    return await get_team_members(db, team_id)


async def update_member_role(
    db: AsyncSession,
    team_id: str,
    target_user_id: str,
    new_role: TeamRole,
    user_id: str,
) -> TeamMember:
    _, context = await build_permission_context(db, team_id, user_id)
    require(permissions.can_update_member_roles(context), "Insufficient permissions to update member roles")
    require(
        permissions.can_update_specific_member_role(context, target_user_id, new_role),
        "You cannot give this member that role",
    )

    member = await get_membership(db, team_id, target_user_id)
    if member is None:
        raise NotFoundError("Team member not found")

    member.role = TeamRole(new_role).value
    await commit_or_raise(db, "update member role")
    await db.refresh(member)
    logger.info("Member role updated", team_id=team_id, target=target_user_id, role=member.role)
    return member


async def remove_member(db: AsyncSession, team_id: str, target_user_id: str, user_id: str) -> None:
    _, context = await build_permission_context(db, team_id, user_id)
    require(permissions.can_remove_members(context), "Insufficient permissions to remove members")
    require(
        permissions.can_remove_specific_member(context, target_user_id),
        "You cannot remove this member",
    )

    member = await get_membership(db, team_id, target_user_id)
    if member is None:
        raise NotFoundError("Team member not found")

    await db.execute(delete(TeamMember).where(TeamMember.id == member.id))
    await commit_or_raise(db, "remove member")
    logger.info("Member removed", team_id=team_id, target=target_user_id, by=user_id)


# ==================== Invites ====================

async def create_invite(
    db: AsyncSession,
    team_id: str,
    user_id: str,
    email: Optional[str] = None,
) -> TeamInvite:
    _, context = await build_permission_context(db, team_id, user_id)
    require(permissions.can_invite_members(context), "Insufficient permissions to invite members")

    invite = TeamInvite(
        team_id=team_id,
        invited_by=user_id,
        email=email.strip().lower() if email else None,
        join_code=await _unique_join_code(db),
        expires_at=utcnow() + timedelta(days=settings.INVITE_EXPIRY_DAYS),
    )
    db.add(invite)
    await commit_or_raise(db, "create invite")
    await db.refresh(invite)
    return invite


async def accept_invite(db: AsyncSession, join_code: str, user_id: str) -> TeamWithMembers:
    result = await db.execute(
        select(TeamInvite).filter(TeamInvite.join_code == join_code.strip().upper())
    )
    invite = result.scalar_one_or_none()
    if invite is None:
        raise NotFoundError("Invite not found")
    if invite.used_at is not None:
        raise ConflictError("Invite has already been used")
    if as_utc(invite.expires_at) <= utcnow():
        raise ConflictError("Invite has expired")

    team = await get_team(db, invite.team_id)
    if team.status != "active":
        raise NotFoundError("Invalid join code or team not found")

    member_count = await _add_member(db, team, user_id, invited_by=invite.invited_by)
    invite.used_at = utcnow()
    invite.used_by = user_id
    await commit_or_raise(db, "accept invite")

    logger.info("Invite accepted", team_id=team.id, user_id=user_id)
    return _with_members(team, member_count, TeamRole.MEMBER)


# ==================== Stats ====================

async def get_team_stats(db: AsyncSession, team_id: str, user_id: str) -> TeamStats:
    _, context = await build_permission_context(db, team_id, user_id)
    require(permissions.can_view_team(context), "You are not a member of this team")

    total_tasks = await db.execute(select(func.count(Task.id)).filter(Task.team_id == team_id))
    completed_tasks = await db.execute(
        select(func.count(Task.id)).filter(Task.team_id == team_id, Task.completed.is_(True))
    )
    pending_invites = await db.execute(
        select(func.count(TeamInvite.id)).filter(
            TeamInvite.team_id == team_id,
            TeamInvite.used_at.is_(None),
            TeamInvite.expires_at > utcnow(),
        )
    )

    return TeamStats(
        total_members=len(context.team_members),
        total_tasks=total_tasks.scalar() or 0,
        completed_tasks=completed_tasks.scalar() or 0,
        pending_invites=pending_invites.scalar() or 0,
    )
