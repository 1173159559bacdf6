"""
Organizations API Endpoints

Organization lifecycle, access codes, members, stats and organization tasks.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from simplr.api.dependencies import CurrentUser, get_current_user, get_db
from simplr.core.exceptions import NotFoundError
from simplr.schemas.organization import (
    OrganizationCreate,
    OrganizationJoin,
    OrganizationOut,
    OrganizationPreview,
    OrganizationStats,
    OrganizationUpdate,
)
from simplr.schemas.organization_member import OrganizationMemberOut, OrganizationMemberRoleUpdate
from simplr.schemas.task import TaskOut
from simplr.services import organization_service

router = APIRouter()


# ==================== Organization CRUD ====================

@router.post("/", response_model=OrganizationOut, status_code=status.HTTP_201_CREATED)
async def create_organization(
    organization_data: OrganizationCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Create an organization.

    The creator becomes its owner. Guests cannot create organizations.
    """
    return await organization_service.create_organization(db, organization_data, current_user.id)


@router.get("/", response_model=List[OrganizationOut])
async def list_my_organizations(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await organization_service.get_user_organizations(db, current_user.id)


@router.get("/preview/{access_code}", response_model=OrganizationPreview)
async def preview_organization(
    access_code: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    preview = await organization_service.get_organization_preview(db, access_code)
    if preview is None:
        raise NotFoundError("Invalid access code")
    return preview


@router.post("/join", response_model=OrganizationOut)
async def join_organization(
    join_data: OrganizationJoin,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await organization_service.join_organization(db, join_data.access_code, current_user.id)


@router.get("/{organization_id}", response_model=OrganizationOut)
async def get_organization(
    organization_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await organization_service.get_organization_for_member(db, organization_id, current_user.id)


@router.patch("/{organization_id}", response_model=OrganizationOut)
async def update_organization(
    organization_id: str,
    organization_update: OrganizationUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Only the owner may rename an organization or change its settings."""
    return await organization_service.update_organization(db, organization_id, organization_update, current_user.id)


@router.delete("/{organization_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_organization(
    organization_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete an organization with its members and tasks. Owner only."""
    await organization_service.delete_organization(db, organization_id, current_user.id)
    return None


@router.post("/{organization_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave_organization(
    organization_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await organization_service.leave_organization(db, organization_id, current_user.id)
    return None


@router.post("/{organization_id}/access-code", response_model=OrganizationOut)
async def regenerate_access_code(
    organization_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Replace the access code; the old one stops working."""
    return await organization_service.regenerate_access_code(db, organization_id, current_user.id)


@router.get("/{organization_id}/stats", response_model=OrganizationStats)
async def get_organization_stats(
    organization_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await organization_service.get_organization_stats(db, organization_id, current_user.id)


@router.get("/{organization_id}/tasks", response_model=List[TaskOut])
async def list_organization_tasks(
    organization_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await organization_service.list_organization_tasks(db, organization_id, current_user.id)


# ==================== Members ====================

@router.get("/{organization_id}/members", response_model=List[OrganizationMemberOut])
async def list_organization_members(
    organization_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await organization_service.list_members_for(db, organization_id, current_user.id)


@router.patch("/{organization_id}/members/{user_id}", response_model=OrganizationMemberOut)
async def update_member_role(
    organization_id: str,
    user_id: str,
    role_update: OrganizationMemberRoleUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await organization_service.update_member_role(
        db, organization_id, user_id, role_update.role, current_user.id
    )


@router.delete("/{organization_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_organization_member(
    organization_id: str,
    user_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await organization_service.remove_member(db, organization_id, user_id, current_user.id)
    return None
