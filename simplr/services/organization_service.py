"""
Organizations: creation, access codes, membership and stats.

Organizations reuse the team role ladder (owner > admin > member) and the
same permission engine. Updating or deleting the organization itself is
reserved to its owner; access codes and member roles are managed by
owners and admins.
"""

import secrets
import string
from typing import List, Optional, Tuple

from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from simplr.core import permissions
from simplr.core.config import settings
from simplr.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError
from simplr.core.permissions import PermissionContext, TeamRole
from simplr.helpers.getters import isGuestUser
from simplr.models.organization import Organization
from simplr.models.organization_member import OrganizationMember
from simplr.models.task import Task
from simplr.schemas.organization import (
    OrganizationCreate,
    OrganizationOut,
    OrganizationPreview,
    OrganizationStats,
    OrganizationUpdate,
)
from simplr.schemas.task import TaskOut
from simplr.services.guards import commit_or_raise, require
from simplr.services.task_store import SQLAlchemyTaskStore
from simplr.logging import get_logger

logger = get_logger(__name__)

ACCESS_CODE_ALPHABET = string.ascii_uppercase + string.digits
ACCESS_CODE_ATTEMPTS = 10


# ==================== Helpers ====================

def generate_access_code(length: Optional[int] = None) -> str:
    length = length or settings.ORG_ACCESS_CODE_LENGTH
    return "".join(secrets.choice(ACCESS_CODE_ALPHABET) for _ in range(length))


async def _unique_access_code(db: AsyncSession) -> str:
    for _ in range(ACCESS_CODE_ATTEMPTS):
        code = generate_access_code()
        hit = await db.execute(select(Organization.id).filter(Organization.access_code == code))
        if hit.first() is None:
            return code
    raise ConflictError("Could not generate a unique access code")


async def count_members(db: AsyncSession, organization_id: str) -> int:
    result = await db.execute(
        select(func.count(OrganizationMember.id)).filter(OrganizationMember.organization_id == organization_id)
    )
    return result.scalar() or 0


def _to_out(organization: Organization, member_count: int, user_role: Optional[TeamRole]) -> OrganizationOut:
    return OrganizationOut(
        id=organization.id,
        name=organization.name,
        description=organization.description,
        access_code=organization.access_code,
        owner_id=organization.owner_id,
        settings=organization.settings or {},
        created_at=organization.created_at,
        updated_at=organization.updated_at,
        member_count=member_count,
        user_role=user_role,
    )


async def get_organization(db: AsyncSession, organization_id: str) -> Organization:
    result = await db.execute(select(Organization).filter(Organization.id == organization_id))
    organization = result.scalar_one_or_none()
    if organization is None:
        raise NotFoundError("Organization not found")
    return organization


async def get_organization_members(db: AsyncSession, organization_id: str) -> List[OrganizationMember]:
    result = await db.execute(
        select(OrganizationMember)
        .filter(OrganizationMember.organization_id == organization_id)
        .order_by(OrganizationMember.joined_at)
    )
    return list(result.scalars().all())


async def get_membership(db: AsyncSession, organization_id: str, user_id: str) -> Optional[OrganizationMember]:
    result = await db.execute(
        select(OrganizationMember).filter(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def require_membership(db: AsyncSession, organization_id: str, user_id: str) -> None:
    """
    Raises:
        PermissionDeniedError: If the user does not belong to the organization
    """
    if await get_membership(db, organization_id, user_id) is None:
        raise PermissionDeniedError("You are not a member of this organization")


async def build_permission_context(
    db: AsyncSession,
    organization_id: str,
    user_id: str,
) -> Tuple[Organization, PermissionContext]:
    """
    Load an organization and its members and derive the caller's context.

    Raises:
        NotFoundError: If the organization does not exist
    """
    organization = await get_organization(db, organization_id)
    members = await get_organization_members(db, organization_id)
    return organization, permissions.get_permission_context(user_id, organization, members)


# ==================== Lifecycle ====================

async def create_organization(db: AsyncSession, data: OrganizationCreate, user_id: str) -> OrganizationOut:
    """
    Create an organization with a fresh access code.

    The creator becomes its owner. Guests cannot own organizations.
    """
    if isGuestUser(user_id):
        raise PermissionDeniedError("Guest users cannot create organizations")

    description = data.description.strip() if data.description and data.description.strip() else None
    organization = Organization(
        name=data.name.strip(),
        description=description,
        access_code=await _unique_access_code(db),
        owner_id=user_id,
        settings={},
    )
    db.add(organization)
    await db.flush()
    db.add(OrganizationMember(organization_id=organization.id, user_id=user_id, role=TeamRole.OWNER.value))

    await commit_or_raise(db, "create organization")
    await db.refresh(organization)

    logger.great("Organization created", organization_id=organization.id)
    return _to_out(organization, 1, TeamRole.OWNER)


async def get_organization_for_member(db: AsyncSession, organization_id: str, user_id: str) -> OrganizationOut:
    organization, context = await build_permission_context(db, organization_id, user_id)
    require(permissions.can_view_team(context), "You are not a member of this organization")
    return _to_out(organization, len(context.team_members), context.current_user_role)


async def _find_by_access_code(db: AsyncSession, access_code: str) -> Optional[Organization]:
    result = await db.execute(
        select(Organization).filter(Organization.access_code == access_code.strip().upper())
    )
    return result.scalar_one_or_none()


async def get_organization_preview(db: AsyncSession, access_code: str) -> Optional[OrganizationPreview]:
    organization = await _find_by_access_code(db, access_code)
    if organization is None:
        return None
    return OrganizationPreview(
        id=organization.id,
        name=organization.name,
        description=organization.description,
        member_count=await count_members(db, organization.id),
        created_at=organization.created_at,
    )


async def get_user_organizations(db: AsyncSession, user_id: str) -> List[OrganizationOut]:
    result = await db.execute(
        select(Organization, OrganizationMember.role)
        .join(OrganizationMember, OrganizationMember.organization_id == Organization.id)
        .filter(OrganizationMember.user_id == user_id)
        .order_by(Organization.created_at)
    )
    return [
        _to_out(organization, await count_members(db, organization.id), TeamRole(role))
        for organization, role in result.all()
    ]


async def update_organization(
    db: AsyncSession,
    organization_id: str,
    data: OrganizationUpdate,
    user_id: str,
) -> OrganizationOut:
    organization, context = await build_permission_context(db, organization_id, user_id)
    require(organization.owner_id == user_id, "Only the organization owner can update it")

    update_data = data.model_dump(exclude_unset=True)
    if "name" in update_data:
        if update_data["name"] is None:
            del update_data["name"]
        else:
            update_data["name"] = update_data["name"].strip()
    if "settings" in update_data and update_data["settings"] is None:
        update_data["settings"] = {}
    for field, value in update_data.items():
        setattr(organization, field, value)

    await commit_or_raise(db, "update organization")
    await db.refresh(organization)
    return _to_out(organization, len(context.team_members), context.current_user_role)


async def delete_organization(db: AsyncSession, organization_id: str, user_id: str) -> None:
    organization = await get_organization(db, organization_id)
    require(organization.owner_id == user_id, "Only the organization owner can delete it")

    await db.execute(delete(Task).where(Task.organization_id == organization_id))
    await db.execute(delete(OrganizationMember).where(OrganizationMember.organization_id == organization_id))
    await db.execute(delete(Organization).where(Organization.id == organization_id))
    await commit_or_raise(db, "delete organization")
    logger.warning("Organization deleted", organization_id=organization_id, user_id=user_id)


async def regenerate_access_code(db: AsyncSession, organization_id: str, user_id: str) -> OrganizationOut:
    organization, context = await build_permission_context(db, organization_id, user_id)
    require(permissions.can_manage_settings(context), "Insufficient permissions to change the access code")

    organization.access_code = await _unique_access_code(db)
    await commit_or_raise(db, "regenerate access code")
    await db.refresh(organization)
    return _to_out(organization, len(context.team_members), context.current_user_role)


# ==================== Membership ====================

async def join_organization(db: AsyncSession, access_code: str, user_id: str) -> OrganizationOut:
    organization = await _find_by_access_code(db, access_code)
    if organization is None:
        raise NotFoundError("Invalid access code")
    if await get_membership(db, organization.id, user_id) is not None:
        raise ConflictError("You are already a member of this organization")

    db.add(OrganizationMember(organization_id=organization.id, user_id=user_id, role=TeamRole.MEMBER.value))
    await commit_or_raise(db, "join organization")

    logger.info("User joined organization", organization_id=organization.id, user_id=user_id)
    return _to_out(organization, await count_members(db, organization.id), TeamRole.MEMBER)


async def leave_organization(db: AsyncSession, organization_id: str, user_id: str) -> None:
    _, context = await build_permission_context(db, organization_id, user_id)
    if context.current_user_role is None:
        raise NotFoundError("You are not a member of this organization")
    require(permissions.can_leave_team(context), "Owners cannot leave their organization. Delete it instead.")

    await db.execute(
        delete(OrganizationMember).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.user_id == user_id,
        )
    )
    await commit_or_raise(db, "leave organization")
    logger.info("User left organization", organization_id=organization_id, user_id=user_id)


async def list_members_for(db: AsyncSession, organization_id: str, user_id: str) -> List[OrganizationMember]:
    _, context = await build_permission_context(db, organization_id, user_id)
    require(permissions.can_view_team(context), "You don't have permission to view organization members")
    return await get_organization_members(db, organization_id)


async def update_member_role(
    db: AsyncSession,
    organization_id: str,
    target_user_id: str,
    new_role: TeamRole,
    user_id: str,
) -> OrganizationMember:
    _, context = await build_permission_context(db, organization_id, user_id)
    require(
        permissions.can_update_specific_member_role(context, target_user_id, new_role),
        "Insufficient permissions to update this member's role",
    )

    member = await get_membership(db, organization_id, target_user_id)
    if member is None:
        raise NotFoundError("Organization member not found")
    if member.role == TeamRole.OWNER.value:
        raise PermissionDeniedError("The owner's role cannot be changed")

    member.role = TeamRole(new_role).value
    await commit_or_raise(db, "update member role")
    await db.refresh(member)
    logger.info("Organization member role updated", organization_id=organization_id,
                target=target_user_id, role=member.role)
    return member


async def remove_member(db: AsyncSession, organization_id: str, target_user_id: str, user_id: str) -> None:
    _, context = await build_permission_context(db, organization_id, user_id)
    require(
        permissions.can_remove_specific_member(context, target_user_id),
        "Insufficient permissions to remove this member",
    )

    member = await get_membership(db, organization_id, target_user_id)
    if member is None:
        raise NotFoundError("Organization member not found")
    if member.role == TeamRole.OWNER.value:
        raise PermissionDeniedError("The owner cannot be removed")

    await db.execute(delete(OrganizationMember).where(OrganizationMember.id == member.id))
    await commit_or_raise(db, "remove member")
    logger.info("Organization member removed", organization_id=organization_id,
                target=target_user_id, by=user_id)


# ==================== Tasks and stats ====================

async def list_organization_tasks(db: AsyncSession, organization_id: str, user_id: str) -> List[TaskOut]:
    _, context = await build_permission_context(db, organization_id, user_id)
    require(permissions.can_view_team(context), "You are not a member of this organization")
    return await SQLAlchemyTaskStore(db).list_organization_tasks(organization_id)


async def get_organization_stats(db: AsyncSession, organization_id: str, user_id: str) -> OrganizationStats:
    _, context = await build_permission_context(db, organization_id, user_id)
    require(permissions.can_view_team(context), "You are not a member of this organization")

    task_count = await db.execute(select(func.count(Task.id)).filter(Task.organization_id == organization_id))
    completed = await db.execute(
        select(func.count(Task.id)).filter(Task.organization_id == organization_id, Task.completed.is_(True))
    )
    return OrganizationStats(
        member_count=len(context.team_members),
        task_count=task_count.scalar() or 0,
        completed_task_count=completed.scalar() or 0,
    )
